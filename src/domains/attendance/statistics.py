# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attendance arithmetic.

A session is a distinct (date, class type) pair recorded for a course.
Students are counted absent from every session without a present record.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

ONE_PLACE = Decimal("0.1")


@dataclass(frozen=True)
class AttendanceFigures:
    """Attendance counts of one student in one course."""

    total_sessions: int
    present: int
    absent: int
    percentage: float


def count_sessions(sessions: Iterable[tuple[date, str]]) -> int:
    """Count distinct (date, class type) sessions."""
    return len(set(sessions))


def attendance_percentage(present: int, total_sessions: int) -> float:
    """Present share in percent, rounded half up to one decimal.

    Zero sessions yield 0.0.
    """
    if total_sessions <= 0:
        return 0.0
    ratio = Decimal(present) * 100 / Decimal(total_sessions)
    return float(ratio.quantize(ONE_PLACE, rounding=ROUND_HALF_UP))


def summarize(present: int, total_sessions: int) -> AttendanceFigures:
    present = min(present, total_sessions)
    return AttendanceFigures(
        total_sessions=total_sessions,
        present=present,
        absent=total_sessions - present,
        percentage=attendance_percentage(present, total_sessions),
    )


def average_percentage(percentages: Iterable[float]) -> float:
    values = list(percentages)
    if not values:
        return 0.0
    mean = Decimal(str(sum(values))) / len(values)
    return float(mean.quantize(ONE_PLACE, rounding=ROUND_HALF_UP))


def meets_minimum(figures: AttendanceFigures, minimum_percentage: float) -> bool:
    """Whether attendance allows attendance-gated evaluations.

    A course without recorded sessions never blocks.
    """
    if figures.total_sessions == 0:
        return True
    return figures.percentage >= minimum_percentage
