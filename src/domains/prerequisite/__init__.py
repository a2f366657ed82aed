# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prerequisite domain package.

This package provides direct prerequisite checks for enrollment and
maintenance of the prerequisite graph.
"""

from src.domains.prerequisite.service import (
    CourseNotFoundError,
    InvalidPrerequisiteError,
    PrerequisiteService,
    PrerequisiteServiceError,
    StudentNotFoundError,
    find_cycle,
)

__all__ = [
    "PrerequisiteService",
    "PrerequisiteServiceError",
    "CourseNotFoundError",
    "StudentNotFoundError",
    "InvalidPrerequisiteError",
    "find_cycle",
]
