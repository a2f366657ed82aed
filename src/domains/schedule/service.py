# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Schedule service for weekly class slots.

This module provides the ScheduleService class for:
- Validating a proposed slot against the persisted schedule
- Creating and deleting single slots
- Building a schedule from many requests with per-request outcomes
- Clearing the whole schedule
- Listing slots per course, teacher and student
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.academic_term.service import TermService
from src.domains.results import (
    ConflictError,
    FailureKind,
    NotFoundError,
    ServiceError,
    ValidationError,
    returns_result,
)
from src.domains.schedule.conflicts import (
    SlotConflict,
    SlotWindow,
    describe_conflict,
    find_conflict,
    find_time_clash,
    format_time_range,
)
from src.infrastructure.database.models import (
    Course,
    Enrollment,
    ScheduleSlot,
    Student,
    Teacher,
    new_id,
)
from src.models.common import day_name
from src.models.enrollment import EnrollmentStatus
from src.models.schedule import (
    BatchScheduleResult,
    ClearScheduleResult,
    ScheduleConflictCheck,
    ScheduleSlotRequest,
    ScheduleSlotResponse,
    SlotOutcome,
)

logger = logging.getLogger(__name__)


class ScheduleServiceError(ServiceError):
    """Base exception for schedule service errors."""

    pass


class InvalidTimeRangeError(ScheduleServiceError, ValidationError):
    """Raised when a slot does not start before it ends."""

    pass


class CourseNotFoundError(ScheduleServiceError, NotFoundError):
    """Raised when a course is not found."""

    pass


class SlotNotFoundError(ScheduleServiceError, NotFoundError):
    """Raised when a schedule slot is not found."""

    pass


class TeacherNotFoundError(ScheduleServiceError, NotFoundError):
    """Raised when a teacher is not found."""

    pass


class StudentNotFoundError(ScheduleServiceError, NotFoundError):
    """Raised when a student is not found."""

    pass


class ScheduleConflictError(ScheduleServiceError, ConflictError):
    """Raised when a slot collides with an existing one."""

    pass


def _window(slot: ScheduleSlot, course: Course) -> SlotWindow:
    return SlotWindow(
        slot_id=slot.id,
        course_id=course.id,
        course_name=course.name,
        teacher_id=course.teacher_id,
        day_of_week=slot.day_of_week,
        start_time=slot.start_time,
        end_time=slot.end_time,
        room=slot.room,
    )


def _candidate(request: ScheduleSlotRequest, course: Course) -> SlotWindow:
    return SlotWindow(
        course_id=course.id,
        course_name=course.name,
        teacher_id=course.teacher_id,
        day_of_week=request.day_of_week,
        start_time=request.start_time,
        end_time=request.end_time,
        room=request.room,
    )


def _to_check(conflict: SlotConflict | None) -> ScheduleConflictCheck:
    if conflict is None:
        return ScheduleConflictCheck(has_conflict=False, message="No schedule conflict")
    other = conflict.other
    return ScheduleConflictCheck(
        has_conflict=True,
        message=describe_conflict(conflict),
        reason=conflict.reason,
        conflicting_course_id=other.course_id,
        conflicting_course_name=other.course_name,
        conflicting_slot_id=other.slot_id,
        conflicting_time_range=format_time_range(other.start_time, other.end_time),
    )


def _to_response(slot: ScheduleSlot, course_name: str | None) -> ScheduleSlotResponse:
    return ScheduleSlotResponse(
        id=slot.id,
        course_id=slot.course_id,
        course_name=course_name,
        day_of_week=slot.day_of_week,
        day_name=day_name(slot.day_of_week),
        start_time=slot.start_time,
        end_time=slot.end_time,
        room=slot.room,
        class_type=slot.class_type,
    )


class ScheduleService:
    """Service for schedule slots and conflict detection.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @returns_result
    async def validate_slot(
        self,
        request: ScheduleSlotRequest,
        exclude_slot_id: str | None = None,
    ) -> ScheduleConflictCheck:
        """Check a proposed slot against every persisted slot on its day.

        Args:
            request: Proposed slot.
            exclude_slot_id: Slot being edited in place, ignored in the check.

        Returns:
            Conflict flag, message and the conflicting course/slot if any.

        Raises:
            InvalidTimeRangeError: If start is not before end.
            CourseNotFoundError: If the course does not exist.
        """
        _, conflict = await self._check(request, exclude_slot_id)
        return _to_check(conflict)

    @returns_result
    async def create_slot(self, request: ScheduleSlotRequest) -> ScheduleSlotResponse:
        """Create a slot if it does not collide with the schedule.

        Raises:
            InvalidTimeRangeError: If start is not before end.
            CourseNotFoundError: If the course does not exist.
            ScheduleConflictError: If the slot collides.
        """
        course, conflict = await self._check(request)
        if conflict is not None:
            check = _to_check(conflict)
            raise ScheduleConflictError(check.message, details=check.model_dump(mode="json"))

        slot = self._new_slot(request)
        self.db.add(slot)
        await self.db.commit()
        await self.db.refresh(slot)

        logger.info(
            "Created schedule slot: course=%s, day=%d, %s",
            course.id,
            slot.day_of_week,
            format_time_range(slot.start_time, slot.end_time),
        )

        return _to_response(slot, course.name)

    @returns_result
    async def delete_slot(self, slot_id: str) -> str:
        """Delete one slot.

        Returns:
            The deleted slot ID.

        Raises:
            SlotNotFoundError: If the slot does not exist.
        """
        result = await self.db.execute(select(ScheduleSlot).where(ScheduleSlot.id == str(slot_id)))
        slot = result.scalar_one_or_none()
        if not slot:
            raise SlotNotFoundError(f"Schedule slot {slot_id} not found")

        await self.db.delete(slot)
        await self.db.commit()

        logger.info("Deleted schedule slot %s", slot_id)
        return str(slot_id)

    @returns_result
    async def build_schedule(self, requests: list[ScheduleSlotRequest]) -> BatchScheduleResult:
        """Create many slots, accepting or rejecting each in input order.

        Each request is checked against the persisted schedule plus the
        requests accepted earlier in the same batch. Each accepted slot is
        flushed in its own savepoint, so an outcome reports what was stored.
        A rejected request never stops the batch.

        Args:
            requests: Slots to create, in priority order.

        Returns:
            Per-request outcomes and totals.
        """
        accumulator = [_window(slot, course) for slot, course in await self._load_slots()]
        courses = await self._load_courses({r.course_id for r in requests})

        outcomes: list[SlotOutcome] = []
        for index, request in enumerate(requests):
            course = courses.get(str(request.course_id))
            outcome = SlotOutcome(
                index=index,
                course_id=str(request.course_id),
                course_name=course.name if course else None,
                day_of_week=request.day_of_week,
                accepted=False,
            )

            if request.start_time >= request.end_time:
                outcome.failure_kind = FailureKind.VALIDATION.value
                outcome.reason = "Start time must be before end time"
            elif course is None:
                outcome.failure_kind = FailureKind.NOT_FOUND.value
                outcome.reason = f"Course {request.course_id} not found"
            else:
                candidate = _candidate(request, course)
                conflict = find_conflict(candidate, accumulator)
                if conflict is not None:
                    outcome.failure_kind = FailureKind.CONFLICT.value
                    outcome.reason = describe_conflict(conflict)
                else:
                    slot = self._new_slot(request)
                    if await self._persist_slot(slot, outcome):
                        accumulator.append(_window(slot, course))
                        outcome.accepted = True
                        outcome.slot = _to_response(slot, course.name)

            outcomes.append(outcome)

        created = sum(1 for o in outcomes if o.accepted)
        if created:
            await self.db.commit()

        logger.info(
            "Built schedule: submitted=%d, created=%d, failed=%d",
            len(requests),
            created,
            len(requests) - created,
        )

        return BatchScheduleResult(
            total_submitted=len(requests),
            total_created=created,
            total_failed=len(requests) - created,
            outcomes=outcomes,
        )

    @returns_result
    async def clear_all(self) -> ClearScheduleResult:
        """Delete every schedule slot.

        Returns:
            Number of deleted slots.
        """
        result = await self.db.execute(delete(ScheduleSlot))
        await self.db.commit()

        deleted = result.rowcount or 0
        logger.info("Cleared schedule: deleted=%d", deleted)
        return ClearScheduleResult(deleted_count=deleted)

    @returns_result
    async def list_course_slots(self, course_id: str) -> list[ScheduleSlotResponse]:
        """List a course's slots ordered by day and start time.

        Raises:
            CourseNotFoundError: If the course does not exist.
        """
        course = await self._get_course(course_id)
        rows = await self._load_slots(ScheduleSlot.course_id == course.id)
        return [_to_response(slot, c.name) for slot, c in rows]

    @returns_result
    async def list_teacher_slots(self, teacher_id: str) -> list[ScheduleSlotResponse]:
        """List the slots of every course a teacher is assigned to.

        Raises:
            TeacherNotFoundError: If the teacher does not exist.
        """
        result = await self.db.execute(select(Teacher).where(Teacher.id == str(teacher_id)))
        if not result.scalar_one_or_none():
            raise TeacherNotFoundError(f"Teacher {teacher_id} not found")

        rows = await self._load_slots(Course.teacher_id == str(teacher_id))
        return [_to_response(slot, c.name) for slot, c in rows]

    @returns_result
    async def list_student_slots(self, student_id: str) -> list[ScheduleSlotResponse]:
        """List the slots of a student's enrolled courses in the active term.

        Empty when no term is active.

        Raises:
            StudentNotFoundError: If the student does not exist.
        """
        result = await self.db.execute(select(Student).where(Student.id == str(student_id)))
        if not result.scalar_one_or_none():
            raise StudentNotFoundError(f"Student {student_id} not found")

        term = await TermService(self.db).load_active_term()
        if term is None:
            return []

        course_ids = await self._enrolled_course_ids(str(student_id), term.id)
        if not course_ids:
            return []
        rows = await self._load_slots(ScheduleSlot.course_id.in_(course_ids))
        return [_to_response(slot, c.name) for slot, c in rows]

    async def find_student_clash(
        self,
        student_id: str,
        term_id: str,
        course_id: str,
    ) -> ScheduleConflictCheck:
        """Check a course's slots against the student's enrolled courses in a term.

        Any time overlap counts, whatever the teacher or room.

        Args:
            student_id: Student identifier.
            term_id: Term of the enrollments to compare with.
            course_id: Course the student wants to join.

        Returns:
            Conflict check; has_conflict is False when nothing overlaps.
        """
        other_ids = [
            cid for cid in await self._enrolled_course_ids(student_id, term_id) if cid != course_id
        ]
        if not other_ids:
            return _to_check(None)

        rows = await self._load_slots(ScheduleSlot.course_id.in_([course_id, *other_ids]))
        windows = [_window(slot, course) for slot, course in rows]
        candidates = [w for w in windows if w.course_id == course_id]
        existing = [w for w in windows if w.course_id != course_id]

        clash = find_time_clash(candidates, existing)
        if clash is None:
            return _to_check(None)

        candidate, other = clash
        time_range = format_time_range(other.start_time, other.end_time)
        return ScheduleConflictCheck(
            has_conflict=True,
            message=(
                f"{candidate.course_name} overlaps {other.course_name} "
                f"on {day_name(other.day_of_week)} at {time_range}"
            ),
            conflicting_course_id=other.course_id,
            conflicting_course_name=other.course_name,
            conflicting_slot_id=other.slot_id,
            conflicting_time_range=time_range,
        )

    async def _check(
        self,
        request: ScheduleSlotRequest,
        exclude_slot_id: str | None = None,
    ) -> tuple[Course, SlotConflict | None]:
        if request.start_time >= request.end_time:
            raise InvalidTimeRangeError(
                "Start time must be before end time",
                details={"start_time": str(request.start_time), "end_time": str(request.end_time)},
            )

        course = await self._get_course(request.course_id)
        rows = await self._load_slots(ScheduleSlot.day_of_week == request.day_of_week)
        existing = [_window(slot, c) for slot, c in rows]
        conflict = find_conflict(
            _candidate(request, course),
            existing,
            exclude_slot_id=str(exclude_slot_id) if exclude_slot_id else None,
        )
        return course, conflict

    async def _persist_slot(self, slot: ScheduleSlot, outcome: SlotOutcome) -> bool:
        """Flush one slot inside a savepoint, recording a failure on the outcome."""
        try:
            async with self.db.begin_nested():
                self.db.add(slot)
        except IntegrityError as e:
            logger.warning("Schedule slot rejected: course=%s: %s", slot.course_id, str(e.orig or e))
            outcome.failure_kind = FailureKind.CONFLICT.value
            outcome.reason = "Slot conflicts with a stored constraint"
            return False
        except SQLAlchemyError as e:
            logger.error("Schedule slot failed: course=%s: %s", slot.course_id, str(e), exc_info=True)
            outcome.failure_kind = FailureKind.BAD_REQUEST.value
            outcome.reason = str(e)
            return False
        return True

    @staticmethod
    def _new_slot(request: ScheduleSlotRequest) -> ScheduleSlot:
        return ScheduleSlot(
            id=new_id(),
            course_id=str(request.course_id),
            day_of_week=request.day_of_week,
            start_time=request.start_time,
            end_time=request.end_time,
            room=request.room.strip() if request.room else None,
            class_type=request.class_type.value,
        )

    async def _load_slots(self, *criteria) -> list[tuple[ScheduleSlot, Course]]:
        query = (
            select(ScheduleSlot, Course)
            .join(Course, ScheduleSlot.course_id == Course.id)
            .where(*criteria)
            .order_by(ScheduleSlot.day_of_week, ScheduleSlot.start_time)
        )
        result = await self.db.execute(query)
        return [(slot, course) for slot, course in result.all()]

    async def _load_courses(self, course_ids: Iterable[str]) -> dict[str, Course]:
        ids = [str(c) for c in course_ids]
        if not ids:
            return {}
        result = await self.db.execute(select(Course).where(Course.id.in_(ids)))
        return {course.id: course for course in result.scalars().all()}

    async def _enrolled_course_ids(self, student_id: str, term_id: str) -> list[str]:
        result = await self.db.execute(
            select(Enrollment.course_id).where(
                Enrollment.student_id == str(student_id),
                Enrollment.term_id == str(term_id),
                Enrollment.status == EnrollmentStatus.ENROLLED.value,
            )
        )
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
