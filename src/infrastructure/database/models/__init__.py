# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models for the academic records store."""

from src.infrastructure.database.models.academic import (
    AttendanceRecord,
    Course,
    CoursePrerequisite,
    Enrollment,
    EvaluationType,
    Grade,
    Notification,
    ScheduleSlot,
    Student,
    Teacher,
    Term,
)
from src.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    new_id,
)

__all__ = [
    "Base",
    "new_id",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Term",
    "Teacher",
    "Student",
    "Course",
    "CoursePrerequisite",
    "Enrollment",
    "EvaluationType",
    "Grade",
    "AttendanceRecord",
    "ScheduleSlot",
    "Notification",
]
