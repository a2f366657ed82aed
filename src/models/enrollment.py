# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment and prerequisite models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EnrollmentStatus(str, Enum):
    """Enrollment lifecycle status."""

    ENROLLED = "enrolled"
    WITHDRAWN = "withdrawn"
    APPROVED = "approved"
    FAILED = "failed"


class EnrollmentResponse(BaseModel):
    """Enrollment of a student in a course for a term."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Enrollment ID")
    student_id: str = Field(description="Student ID")
    course_id: str = Field(description="Course ID")
    term_id: str = Field(description="Term ID")
    status: EnrollmentStatus = Field(description="Lifecycle status")
    enrolled_at: datetime = Field(description="When the enrollment was created or reactivated")
    withdrawn_at: datetime | None = Field(default=None, description="Withdrawal time")
    final_average: Decimal | None = Field(default=None, description="Final weighted average")
    is_authorized: bool = Field(default=False, description="Created under administrative override")


class MissingReason(str, Enum):
    """Why a prerequisite is not satisfied."""

    NOT_TAKEN = "not_taken"
    IN_PROGRESS = "in_progress"
    FAILED = "failed"


class MissingPrerequisite(BaseModel):
    """A direct prerequisite the student has not approved."""

    course_id: str = Field(description="Prerequisite course ID")
    course_code: str = Field(description="Prerequisite course code")
    course_name: str = Field(description="Prerequisite course name")
    reason: MissingReason = Field(description="Why it is not satisfied")
    last_average: Decimal | None = Field(
        default=None, description="Last recorded final average when failed"
    )


class PrerequisiteCheckResponse(BaseModel):
    """Outcome of checking a course's direct prerequisites for a student."""

    student_id: str = Field(description="Student ID")
    course_id: str = Field(description="Course being checked")
    satisfied: bool = Field(description="Whether every direct prerequisite is approved")
    missing: list[MissingPrerequisite] = Field(default_factory=list)

    @property
    def missing_ids(self) -> list[str]:
        return [m.course_id for m in self.missing]
