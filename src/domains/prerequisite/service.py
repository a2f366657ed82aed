# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prerequisite service.

This module provides the PrerequisiteService class for:
- Checking a student's direct prerequisites for a course
- Replacing a course's prerequisite set without creating cycles

Only direct edges are checked: a prerequisite of a prerequisite is not
required again when enrolling.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.results import (
    NotFoundError,
    ServiceError,
    ValidationError,
    returns_result,
)
from src.infrastructure.database.models import Course, CoursePrerequisite, Enrollment, Student
from src.models.enrollment import (
    EnrollmentStatus,
    MissingPrerequisite,
    MissingReason,
    PrerequisiteCheckResponse,
)

logger = logging.getLogger(__name__)


class PrerequisiteServiceError(ServiceError):
    """Base exception for prerequisite service errors."""

    pass


class CourseNotFoundError(PrerequisiteServiceError, NotFoundError):
    """Raised when a course is not found."""

    pass


class StudentNotFoundError(PrerequisiteServiceError, NotFoundError):
    """Raised when a student is not found."""

    pass


class InvalidPrerequisiteError(PrerequisiteServiceError, ValidationError):
    """Raised when a prerequisite edge is a self reference or closes a cycle."""

    pass


def find_cycle(
    edges: Iterable[tuple[str, str]],
    course_id: str,
    prerequisite_ids: Iterable[str],
) -> list[str] | None:
    """Find a cycle that new prerequisite edges would create.

    Args:
        edges: Existing (course_id, prerequisite_id) edges, excluding the
            edges of course_id that are being replaced.
        course_id: Course receiving the new prerequisites.
        prerequisite_ids: Proposed direct prerequisites.

    Returns:
        The course path from course_id back to itself, or None.
    """
    graph: dict[str, list[str]] = defaultdict(list)
    for source, target in edges:
        graph[source].append(target)

    for start in prerequisite_ids:
        stack: list[tuple[str, list[str]]] = [(start, [course_id, start])]
        seen: set[str] = set()
        while stack:
            node, path = stack.pop()
            if node == course_id:
                return path
            if node in seen:
                continue
            seen.add(node)
            for nxt in graph.get(node, []):
                stack.append((nxt, [*path, nxt]))
    return None


class PrerequisiteService:
    """Service for course prerequisites.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def evaluate(self, student_id: str, course_id: str) -> PrerequisiteCheckResponse:
        """Evaluate a student's direct prerequisites for a course.

        A prerequisite is satisfied only by an approved enrollment in that
        exact course, in any term.

        Args:
            student_id: Student identifier.
            course_id: Target course identifier.

        Returns:
            Check outcome with the missing prerequisites in code order.

        Raises:
            StudentNotFoundError: If the student does not exist.
            CourseNotFoundError: If the course does not exist.
        """
        await self._get_student(student_id)
        await self._get_course(course_id)

        prerequisites = await self._get_prerequisites(str(course_id))
        if not prerequisites:
            return PrerequisiteCheckResponse(
                student_id=str(student_id), course_id=str(course_id), satisfied=True
            )

        query = (
            select(Enrollment)
            .where(
                Enrollment.student_id == str(student_id),
                Enrollment.course_id.in_([p.id for p in prerequisites]),
                Enrollment.status != EnrollmentStatus.WITHDRAWN.value,
            )
            .order_by(Enrollment.enrolled_at)
        )
        result = await self.db.execute(query)
        by_course: dict[str, list[Enrollment]] = defaultdict(list)
        for enrollment in result.scalars().all():
            by_course[enrollment.course_id].append(enrollment)

        missing: list[MissingPrerequisite] = []
        for prerequisite in prerequisites:
            history = by_course.get(prerequisite.id, [])
            statuses = {e.status for e in history}
            if EnrollmentStatus.APPROVED.value in statuses:
                continue

            last_average = None
            if EnrollmentStatus.ENROLLED.value in statuses:
                reason = MissingReason.IN_PROGRESS
            elif history:
                reason = MissingReason.FAILED
                last_average = history[-1].final_average
            else:
                reason = MissingReason.NOT_TAKEN

            missing.append(
                MissingPrerequisite(
                    course_id=prerequisite.id,
                    course_code=prerequisite.code,
                    course_name=prerequisite.name,
                    reason=reason,
                    last_average=last_average,
                )
            )

        return PrerequisiteCheckResponse(
            student_id=str(student_id),
            course_id=str(course_id),
            satisfied=not missing,
            missing=missing,
        )

    @returns_result
    async def check(self, student_id: str, course_id: str) -> PrerequisiteCheckResponse:
        """Check a student's direct prerequisites for a course.

        See evaluate() for the rules.
        """
        return await self.evaluate(student_id, course_id)

    @returns_result
    async def set_prerequisites(
        self,
        course_id: str,
        prerequisite_ids: list[str],
    ) -> list[str]:
        """Replace a course's direct prerequisites.

        Args:
            course_id: Course to configure.
            prerequisite_ids: New direct prerequisite course IDs.

        Returns:
            The stored prerequisite IDs.

        Raises:
            CourseNotFoundError: If the course or a prerequisite does not exist.
            InvalidPrerequisiteError: On a self reference or a cycle.
        """
        course = await self._get_course(course_id)
        wanted = list(dict.fromkeys(str(p) for p in prerequisite_ids))

        if course.id in wanted:
            raise InvalidPrerequisiteError(
                f"Course {course.code} cannot be its own prerequisite",
                details={"course_id": course.id},
            )

        if wanted:
            result = await self.db.execute(select(Course.id).where(Course.id.in_(wanted)))
            found = set(result.scalars().all())
            unknown = [p for p in wanted if p not in found]
            if unknown:
                raise CourseNotFoundError(
                    "Prerequisite course not found",
                    details={"course_ids": unknown},
                )

        result = await self.db.execute(
            select(CoursePrerequisite.course_id, CoursePrerequisite.prerequisite_id).where(
                CoursePrerequisite.course_id != course.id
            )
        )
        cycle = find_cycle(result.all(), course.id, wanted)
        if cycle:
            raise InvalidPrerequisiteError(
                "Prerequisites would create a cycle",
                details={"cycle": cycle},
            )

        await self.db.execute(
            delete(CoursePrerequisite).where(CoursePrerequisite.course_id == course.id)
        )
        for prerequisite_id in wanted:
            self.db.add(CoursePrerequisite(course_id=course.id, prerequisite_id=prerequisite_id))
        await self.db.commit()

        logger.info(
            "Set prerequisites: course=%s, prerequisites=%d",
            course.id,
            len(wanted),
        )

        return wanted

    async def _get_prerequisites(self, course_id: str) -> list[Course]:
        query = (
            select(Course)
            .join(CoursePrerequisite, CoursePrerequisite.prerequisite_id == Course.id)
            .where(CoursePrerequisite.course_id == course_id)
            .order_by(Course.code)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _get_course(self, course_id: str) -> Course:
        """Get course by ID.

        Raises:
            CourseNotFoundError: If not found.
        """
        result = await self.db.execute(select(Course).where(Course.id == str(course_id)))
        course = result.scalar_one_or_none()
        if not course:
            raise CourseNotFoundError(f"Course {course_id} not found")
        return course

    async def _get_student(self, student_id: str) -> Student:
        """Get student by ID.

        Raises:
            StudentNotFoundError: If not found.
        """
        result = await self.db.execute(select(Student).where(Student.id == str(student_id)))
        student = result.scalar_one_or_none()
        if not student:
            raise StudentNotFoundError(f"Student {student_id} not found")
        return student
