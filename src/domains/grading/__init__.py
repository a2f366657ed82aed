# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading domain package.

This package provides weighted evaluation setups, grade recording, final
averages and the derived academic standing of students.
"""

from src.domains.grading.calculator import (
    AverageComputation,
    FinalizedCourse,
    Standing,
    WeightedType,
    compute_average,
    compute_standing,
    weighted_gpa,
)
from src.domains.grading.service import (
    AttendanceRequirementError,
    CourseAccessDeniedError,
    CourseNotFoundError,
    DuplicateEvaluationNameError,
    EnrollmentNotFoundError,
    EvaluationTypeNotFoundError,
    GradingService,
    GradingServiceError,
    InvalidGradeError,
    InvalidWeightError,
    StudentNotFoundError,
    WithdrawnEnrollmentError,
)

__all__ = [
    "GradingService",
    "GradingServiceError",
    "CourseNotFoundError",
    "StudentNotFoundError",
    "EnrollmentNotFoundError",
    "EvaluationTypeNotFoundError",
    "CourseAccessDeniedError",
    "InvalidWeightError",
    "DuplicateEvaluationNameError",
    "InvalidGradeError",
    "WithdrawnEnrollmentError",
    "AttendanceRequirementError",
    "AverageComputation",
    "FinalizedCourse",
    "Standing",
    "WeightedType",
    "compute_average",
    "compute_standing",
    "weighted_gpa",
]
