# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attendance domain package.

This package provides attendance recording and statistics:
- Single records with duplicate rejection
- Per-session batches with per-row upserts and failures
- Course summaries and per-student statistics
"""

from src.domains.attendance.service import (
    AttendanceService,
    AttendanceServiceError,
    CourseAccessDeniedError,
    CourseNotFoundError,
    DuplicateAttendanceError,
    NotEnrolledError,
    StudentNotFoundError,
    WithdrawnEnrollmentError,
)
from src.domains.attendance.statistics import (
    AttendanceFigures,
    attendance_percentage,
    count_sessions,
    meets_minimum,
    summarize,
)

__all__ = [
    "AttendanceService",
    "AttendanceServiceError",
    "CourseNotFoundError",
    "StudentNotFoundError",
    "NotEnrolledError",
    "WithdrawnEnrollmentError",
    "DuplicateAttendanceError",
    "CourseAccessDeniedError",
    "AttendanceFigures",
    "attendance_percentage",
    "count_sessions",
    "meets_minimum",
    "summarize",
]
