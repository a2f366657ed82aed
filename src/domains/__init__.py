# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the academic rules engine.

This package contains domain services that encapsulate the academic rules.
Each service works on an injected AsyncSession and returns a ServiceResult
from its public operations.

Domains:
    academic_term: Active term lookup and activation.
    prerequisite: Direct prerequisite checks and prerequisite graph edits.
    enrollment: Enrollment and withdrawal rules.
    schedule: Weekly timetable slots and conflict detection.
    grading: Evaluation setups, grades, final averages and standing.
    attendance: Attendance records and statistics.
"""
