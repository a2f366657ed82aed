# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Schedule domain package.

This package provides weekly slot management and conflict detection:
- Single slot validation, creation and deletion
- Batch schedule building with per-request outcomes
- Student timetable clash detection used by enrollment
"""

from src.domains.schedule.conflicts import (
    SlotConflict,
    SlotWindow,
    conflict_reason,
    find_conflict,
    find_time_clash,
    format_time_range,
    intervals_overlap,
)
from src.domains.schedule.service import (
    CourseNotFoundError,
    InvalidTimeRangeError,
    ScheduleConflictError,
    ScheduleService,
    ScheduleServiceError,
    SlotNotFoundError,
    StudentNotFoundError,
    TeacherNotFoundError,
)

__all__ = [
    "ScheduleService",
    "ScheduleServiceError",
    "InvalidTimeRangeError",
    "CourseNotFoundError",
    "SlotNotFoundError",
    "TeacherNotFoundError",
    "StudentNotFoundError",
    "ScheduleConflictError",
    "SlotWindow",
    "SlotConflict",
    "intervals_overlap",
    "conflict_reason",
    "find_conflict",
    "find_time_clash",
    "format_time_range",
]
