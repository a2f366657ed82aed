# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Evaluation type, grade and academic standing models."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.models.enrollment import EnrollmentStatus


class EvaluationTypeConfig(BaseModel):
    """Desired state of one evaluation type.

    Entries with an id update that type; entries without one are created.
    Weight bounds are enforced by the grading service.
    """

    id: str | None = Field(default=None, description="Existing evaluation type ID")
    name: str = Field(min_length=1, max_length=100, description="Evaluation name")
    weight: Decimal = Field(description="Weight percentage 0-100")
    display_order: int = Field(default=0, description="Ordering within the course")
    is_active: bool = Field(default=True)
    requires_min_attendance: bool = Field(
        default=False, description="Grade only accepted with sufficient attendance"
    )


class EvaluationTypeResponse(BaseModel):
    """Persisted evaluation type."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    course_id: str
    name: str
    weight: Decimal
    display_order: int
    is_active: bool
    requires_min_attendance: bool


class EvaluationConfigurationResponse(BaseModel):
    """Evaluation setup of a course after configuration."""

    course_id: str
    evaluation_types: list[EvaluationTypeResponse] = Field(default_factory=list)
    total_weight: Decimal = Field(description="Sum of active weights")
    is_complete: bool = Field(description="Whether active weights sum to 100")
    deleted_count: int = Field(default=0, description="Types removed by this configuration")


class GradeEntry(BaseModel):
    """One grade value for an evaluation type."""

    evaluation_type_id: str
    value: Decimal
    observations: str | None = Field(default=None, max_length=500)


class EnrollmentGrades(BaseModel):
    """Grades for one enrollment, in submission order."""

    enrollment_id: str
    grades: list[GradeEntry] = Field(default_factory=list)


class RecordGradesRequest(BaseModel):
    """Grades for many enrollments of one course."""

    entries: list[EnrollmentGrades] = Field(default_factory=list)


class FinalAverageResponse(BaseModel):
    """Weighted average of an enrollment."""

    enrollment_id: str
    average: Decimal = Field(description="Weighted average over graded active types")
    is_final: bool = Field(description="All active types graded and weights complete")
    passed: bool | None = Field(default=None, description="Set only when final")
    status: EnrollmentStatus
    graded_types: int
    active_types: int
    total_weight: Decimal


class RecordGradesResponse(BaseModel):
    """Outcome of recording grades for a course."""

    course_id: str
    grades_written: int
    enrollments: list[FinalAverageResponse] = Field(default_factory=list)


class StudentStandingResponse(BaseModel):
    """Derived academic standing of a student."""

    student_id: str
    cumulative_gpa: Decimal
    term_gpa: Decimal
    accumulated_credits: int
    current_cycle: int


class AcademicRecordCourse(BaseModel):
    """One finalized course on the academic record."""

    course_id: str
    course_code: str
    course_name: str
    credits: int
    final_average: Decimal
    status: EnrollmentStatus


class AcademicRecordTerm(BaseModel):
    """Finalized courses of one term."""

    term_id: str
    term_name: str
    year: int
    courses: list[AcademicRecordCourse] = Field(default_factory=list)
    term_gpa: Decimal
    cumulative_gpa: Decimal = Field(description="Cumulative GPA up to and including this term")
    approved_credits: int


class AcademicRecordResponse(BaseModel):
    """Term-by-term academic record of a student."""

    student_id: str
    student_code: str
    student_name: str
    terms: list[AcademicRecordTerm] = Field(default_factory=list)
    standing: StudentStandingResponse
