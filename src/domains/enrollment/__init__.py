# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment domain package.

This package provides student enrollment management functionality including:
- Enrollment against the active term with prerequisite, timetable,
  credit and capacity checks
- Enrollment withdrawal
- Enrollment and withdrawal events
"""

from src.domains.enrollment.service import (
    AlreadyEnrolledError,
    AlreadyWithdrawnError,
    CourseFullError,
    CourseNotFoundError,
    EnrollmentClosedError,
    EnrollmentService,
    EnrollmentServiceError,
    InsufficientCreditsError,
    NotEnrolledError,
    PrerequisitesNotMetError,
    RetakeBlockedError,
    ScheduleClashError,
    StudentNotFoundError,
)

__all__ = [
    "EnrollmentService",
    "EnrollmentServiceError",
    "CourseNotFoundError",
    "StudentNotFoundError",
    "AlreadyEnrolledError",
    "NotEnrolledError",
    "AlreadyWithdrawnError",
    "EnrollmentClosedError",
    "PrerequisitesNotMetError",
    "ScheduleClashError",
    "CourseFullError",
    "InsufficientCreditsError",
    "RetakeBlockedError",
]
