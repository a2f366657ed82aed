# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attendance recording and statistics models."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.common import ClassType


class AttendanceRecordRequest(BaseModel):
    """Attendance of one student at one session."""

    student_id: str
    course_id: str
    session_date: date
    class_type: ClassType = Field(default=ClassType.THEORY)
    is_present: bool
    notes: str | None = Field(default=None, max_length=500)


class AttendanceResponse(BaseModel):
    """Persisted attendance record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    course_id: str
    session_date: date
    class_type: ClassType
    is_present: bool
    notes: str | None = None
    recorded_at: datetime


class AttendanceBatchEntry(BaseModel):
    """One student's attendance inside a batch."""

    student_id: str
    is_present: bool
    notes: str | None = Field(default=None, max_length=500)


class AttendanceBatchRequest(BaseModel):
    """Attendance of many students at one session of a course."""

    course_id: str
    session_date: date
    class_type: ClassType = Field(default=ClassType.THEORY)
    entries: list[AttendanceBatchEntry] = Field(default_factory=list)


class AttendanceRowFailure(BaseModel):
    """A batch row that could not be written."""

    student_id: str
    kind: str = Field(description="Failure kind")
    reason: str


class AttendanceBatchResponse(BaseModel):
    """Outcome of a batch attendance write."""

    course_id: str
    session_date: date
    class_type: ClassType
    created: int = 0
    updated: int = 0
    failed: list[AttendanceRowFailure] = Field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return self.created + self.updated + len(self.failed)


class StudentAttendanceSummary(BaseModel):
    """Attendance figures of one student in a course."""

    student_id: str
    student_code: str | None = None
    student_name: str | None = None
    total_sessions: int
    present: int
    absent: int
    percentage: float


class CourseAttendanceSummary(BaseModel):
    """Attendance figures of every enrolled student of a course."""

    course_id: str
    course_name: str
    start_date: date | None = None
    end_date: date | None = None
    total_sessions: int
    students: list[StudentAttendanceSummary] = Field(default_factory=list)
    average_percentage: float


class AttendanceStatistics(BaseModel):
    """Attendance figures of one student plus the final exam gate."""

    student_id: str
    course_id: str
    total_sessions: int
    present: int
    absent: int
    percentage: float
    min_percentage_required: float
    can_take_final_exam: bool
    block_message: str | None = None
