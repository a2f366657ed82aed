# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Weighted average and academic standing arithmetic.

All values are Decimal; averages and GPAs round half up to two places.

Example:
    >>> types = [WeightedType("a", Decimal("60")), WeightedType("b", Decimal("40"))]
    >>> result = compute_average(types, {"a": Decimal("14"), "b": Decimal("16")}, Decimal("10.5"))
    >>> result.average, result.passed
    (Decimal('14.80'), True)
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


class EvaluationTypeLike(Protocol):
    id: str
    weight: Decimal
    is_active: bool


@dataclass(frozen=True)
class WeightedType:
    """Minimal evaluation type used outside the ORM."""

    id: str
    weight: Decimal
    is_active: bool = True


@dataclass(frozen=True)
class AverageComputation:
    """Weighted average of one enrollment.

    Attributes:
        average: Sum of value x weight / 100 over graded active types.
        is_final: Every active type is graded and active weights are complete.
        passed: Whether the average reaches the passing grade; None unless final.
        graded_types: Active types with a grade.
        active_types: Active types of the course.
        total_weight: Sum of active weights.
    """

    average: Decimal
    is_final: bool
    passed: bool | None
    graded_types: int
    active_types: int
    total_weight: Decimal


@dataclass(frozen=True)
class FinalizedCourse:
    """A course with a final average, as used for standing."""

    term_id: str
    term_start: date
    credits: int
    average: Decimal
    approved: bool


@dataclass(frozen=True)
class Standing:
    cumulative_gpa: Decimal
    term_gpa: Decimal
    accumulated_credits: int
    current_cycle: int


def quantize(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def compute_average(
    evaluation_types: Iterable[EvaluationTypeLike],
    grades: Mapping[str, Decimal],
    passing_grade: Decimal,
    weight_total: Decimal = HUNDRED,
) -> AverageComputation:
    """Compute the weighted average of one enrollment.

    Inactive types are ignored entirely. Active types with zero weight count
    towards completeness but never move the average.

    Args:
        evaluation_types: Evaluation types of the course.
        grades: Grade value per evaluation type ID.
        passing_grade: Threshold for approval.
        weight_total: Weight sum of a complete configuration.

    Returns:
        The average with its finality and outcome.
    """
    active = [t for t in evaluation_types if t.is_active]
    total_weight = sum((Decimal(t.weight) for t in active), ZERO)

    average = ZERO
    graded = 0
    for evaluation_type in active:
        value = grades.get(evaluation_type.id)
        if value is None:
            continue
        graded += 1
        if evaluation_type.weight > 0:
            average += Decimal(value) * Decimal(evaluation_type.weight) / HUNDRED

    average = quantize(average)
    is_final = bool(active) and graded == len(active) and total_weight == weight_total

    return AverageComputation(
        average=average,
        is_final=is_final,
        passed=(average >= passing_grade) if is_final else None,
        graded_types=graded,
        active_types=len(active),
        total_weight=total_weight,
    )


def weighted_gpa(courses: Sequence[FinalizedCourse]) -> Decimal:
    """Credit-weighted mean of final averages; zero without credits."""
    credits = sum(c.credits for c in courses)
    if credits <= 0:
        return quantize(ZERO)
    total = sum((c.average * c.credits for c in courses), ZERO)
    return quantize(total / credits)


def compute_standing(courses: Sequence[FinalizedCourse]) -> Standing:
    """Derive a student's standing from every finalized course.

    The term GPA covers the most recent term with a finalized course, and the
    cycle counts distinct terms with finalized courses (at least 1).
    """
    if not courses:
        return Standing(
            cumulative_gpa=quantize(ZERO),
            term_gpa=quantize(ZERO),
            accumulated_credits=0,
            current_cycle=1,
        )

    latest = max(courses, key=lambda c: (c.term_start, c.term_id))
    latest_courses = [c for c in courses if c.term_id == latest.term_id]

    return Standing(
        cumulative_gpa=weighted_gpa(courses),
        term_gpa=weighted_gpa(latest_courses),
        accumulated_credits=sum(c.credits for c in courses if c.approved),
        current_cycle=max(1, len({c.term_id for c in courses})),
    )
