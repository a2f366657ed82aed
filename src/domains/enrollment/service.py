# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment service for student course enrollments.

This module provides the EnrollmentService class for:
- Enrolling a student in a course for the active term
- Withdrawing a student from a course
- Listing a student's enrollments

Enrollment checks run in this order: active term, student and course
existence, duplicate enrollment, credit minimum, then (unless an
administrative override is given) same-year retake, prerequisites and
timetable clashes, and finally course capacity. The (student, course, term)
uniqueness constraint is the last guard against concurrent duplicates.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings, get_settings
from src.domains.academic_term.service import TermService
from src.domains.prerequisite.service import PrerequisiteService
from src.domains.results import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    ServiceError,
    returns_result,
)
from src.domains.schedule.service import ScheduleService
from src.infrastructure.database import is_unique_violation
from src.infrastructure.database.models import Course, Enrollment, Student, Term, new_id
from src.infrastructure.events import (
    DomainEvent,
    EventBus,
    StudentEnrolledEvent,
    StudentWithdrawnEvent,
    get_event_bus,
)
from src.models.enrollment import EnrollmentResponse, EnrollmentStatus
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class EnrollmentServiceError(ServiceError):
    """Base exception for enrollment service errors."""

    pass


class CourseNotFoundError(EnrollmentServiceError, NotFoundError):
    """Raised when course is not found."""

    pass


class StudentNotFoundError(EnrollmentServiceError, NotFoundError):
    """Raised when student is not found."""

    pass


class AlreadyEnrolledError(EnrollmentServiceError, ConflictError):
    """Raised when student is already enrolled in the course for the term."""

    pass


class NotEnrolledError(EnrollmentServiceError, NotFoundError):
    """Raised when an enrollment does not exist or belongs to another student."""

    pass


class AlreadyWithdrawnError(EnrollmentServiceError, BadRequestError):
    """Raised when withdrawing an enrollment twice."""

    pass


class EnrollmentClosedError(EnrollmentServiceError, BadRequestError):
    """Raised when an enrollment can no longer change state."""

    pass


class PrerequisitesNotMetError(EnrollmentServiceError, BadRequestError):
    """Raised when direct prerequisites are missing."""

    pass


class ScheduleClashError(EnrollmentServiceError, BadRequestError):
    """Raised when the course overlaps the student's timetable."""

    pass


class CourseFullError(EnrollmentServiceError, BadRequestError):
    """Raised when the course reached its capacity for the term."""

    pass


class InsufficientCreditsError(EnrollmentServiceError, BadRequestError):
    """Raised when the student lacks the approved credits the course requires."""

    pass


class RetakeBlockedError(EnrollmentServiceError, BadRequestError):
    """Raised when retaking a course failed earlier in the same year."""

    pass


class EnrollmentService:
    """Service for managing student enrollments.

    Attributes:
        db: Async database session.
        event_bus: Bus receiving enrollment events.
        settings: Application settings.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.event_bus = event_bus or get_event_bus()
        self.settings = settings or get_settings()
        self.terms = TermService(db)
        self.prerequisites = PrerequisiteService(db)
        self.schedule = ScheduleService(db)

    @returns_result
    async def enroll(
        self,
        student_id: str,
        course_id: str,
        term_id: str,
        administrative_override: bool = False,
    ) -> EnrollmentResponse:
        """Enroll a student in a course for the active term.

        Args:
            student_id: Student identifier.
            course_id: Course identifier.
            term_id: Term identifier; must be the active term.
            administrative_override: Skip retake, prerequisite and
                timetable checks.

        Returns:
            The created or reactivated enrollment.

        Raises:
            NoActiveTermError, InactiveTermError: If the term is not active.
            StudentNotFoundError, CourseNotFoundError: If not found.
            AlreadyEnrolledError: If already enrolled for the term.
            InsufficientCreditsError: If below the course credit minimum.
            RetakeBlockedError: If failed earlier in the same year.
            PrerequisitesNotMetError: If direct prerequisites are missing.
            ScheduleClashError: If the course overlaps the timetable.
            CourseFullError: If the course is at capacity.
        """
        term = await self.terms.require_active(term_id)
        student = await self._get_student(student_id)
        course = await self._get_course(course_id)

        existing = await self._find_enrollment(student.id, course.id, term.id)
        if existing and existing.status != EnrollmentStatus.WITHDRAWN.value:
            raise AlreadyEnrolledError(
                f"Student is already enrolled in {course.name} for term {term.name}",
                details={"enrollment_id": existing.id},
            )

        self._check_credit_minimum(student, course)

        if not administrative_override:
            if self.settings.enrollment.block_same_year_retake:
                await self._check_same_year_retake(student, course, term)
            await self._check_prerequisites(student, course)
            await self._check_timetable(student, course, term)

        await self._check_capacity(course, term)

        if existing:
            existing.status = EnrollmentStatus.ENROLLED.value
            existing.enrolled_at = utc_now()
            existing.withdrawn_at = None
            existing.final_average = None
            existing.is_authorized = administrative_override
            enrollment = existing
        else:
            enrollment = Enrollment(
                id=new_id(),
                student_id=student.id,
                course_id=course.id,
                term_id=term.id,
                status=EnrollmentStatus.ENROLLED.value,
                enrolled_at=utc_now(),
                is_authorized=administrative_override,
            )
            self.db.add(enrollment)

        # Rollback expires loaded rows
        duplicate_message = f"Student is already enrolled in {course.name} for term {term.name}"
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not is_unique_violation(e):
                raise
            raise AlreadyEnrolledError(duplicate_message) from e
        await self.db.refresh(enrollment)

        logger.info(
            "%s student: student=%s, course=%s, term=%s, override=%s",
            "Reactivated" if existing else "Enrolled",
            student.id,
            course.id,
            term.id,
            administrative_override,
        )

        await self._publish(
            StudentEnrolledEvent(
                enrollment_id=enrollment.id,
                student_id=student.id,
                course_id=course.id,
                term_id=term.id,
                user_id=student.user_id,
                course_name=course.name,
                term_name=term.name,
                is_authorized=administrative_override,
            )
        )

        return EnrollmentResponse.model_validate(enrollment)

    @returns_result
    async def withdraw(self, enrollment_id: str, student_id: str) -> EnrollmentResponse:
        """Withdraw a student from a course.

        Args:
            enrollment_id: Enrollment identifier.
            student_id: Student asking to withdraw; must own the enrollment.

        Returns:
            The withdrawn enrollment.

        Raises:
            NotEnrolledError: If missing or owned by another student.
            AlreadyWithdrawnError: If already withdrawn.
            EnrollmentClosedError: If graded or its term is no longer active.
        """
        result = await self.db.execute(
            select(Enrollment).where(Enrollment.id == str(enrollment_id))
        )
        enrollment = result.scalar_one_or_none()
        if not enrollment or enrollment.student_id != str(student_id):
            raise NotEnrolledError(f"Enrollment {enrollment_id} not found")

        if enrollment.status == EnrollmentStatus.WITHDRAWN.value:
            raise AlreadyWithdrawnError("Enrollment is already withdrawn")
        if enrollment.status != EnrollmentStatus.ENROLLED.value:
            raise EnrollmentClosedError(
                f"Enrollment is {enrollment.status} and can no longer be withdrawn"
            )

        term = await self.terms.load_term(enrollment.term_id)
        if not term.is_active:
            raise EnrollmentClosedError(f"Term {term.name} is closed")

        enrollment.status = EnrollmentStatus.WITHDRAWN.value
        enrollment.withdrawn_at = utc_now()

        await self.db.commit()
        await self.db.refresh(enrollment)

        logger.info(
            "Withdrew student: student=%s, enrollment=%s",
            student_id,
            enrollment_id,
        )

        student = await self._get_student(enrollment.student_id)
        course = await self._get_course(enrollment.course_id)
        await self._publish(
            StudentWithdrawnEvent(
                enrollment_id=enrollment.id,
                student_id=student.id,
                course_id=course.id,
                term_id=term.id,
                user_id=student.user_id,
                course_name=course.name,
                term_name=term.name,
            )
        )

        return EnrollmentResponse.model_validate(enrollment)

    @returns_result
    async def list_student_enrollments(
        self,
        student_id: str,
        term_id: str | None = None,
    ) -> list[EnrollmentResponse]:
        """List a student's enrollments, newest first.

        Args:
            student_id: Student identifier.
            term_id: Optional term filter.

        Raises:
            StudentNotFoundError: If the student does not exist.
        """
        await self._get_student(student_id)

        query = select(Enrollment).where(Enrollment.student_id == str(student_id))
        if term_id:
            query = query.where(Enrollment.term_id == str(term_id))
        query = query.order_by(Enrollment.enrolled_at.desc())

        result = await self.db.execute(query)
        return [EnrollmentResponse.model_validate(e) for e in result.scalars().all()]

    def _check_credit_minimum(self, student: Student, course: Course) -> None:
        required = course.min_approved_credits
        if required and student.accumulated_credits < required:
            raise InsufficientCreditsError(
                f"{course.name} requires {required} approved credits",
                details={
                    "required_credits": required,
                    "accumulated_credits": student.accumulated_credits,
                },
            )

    async def _check_same_year_retake(self, student: Student, course: Course, term: Term) -> None:
        query = (
            select(Term.name)
            .join(Enrollment, Enrollment.term_id == Term.id)
            .where(
                Enrollment.student_id == student.id,
                Enrollment.course_id == course.id,
                Enrollment.status == EnrollmentStatus.FAILED.value,
                Term.year == term.year,
                Term.id != term.id,
            )
        )
        result = await self.db.execute(query)
        failed_term = result.scalars().first()
        if failed_term:
            raise RetakeBlockedError(
                f"{course.name} was failed in {failed_term}; it can be retaken next year",
                details={"failed_term": failed_term},
            )

    async def _check_prerequisites(self, student: Student, course: Course) -> None:
        check = await self.prerequisites.evaluate(student.id, course.id)
        if not check.satisfied:
            raise PrerequisitesNotMetError(
                f"Missing prerequisites for {course.name}",
                details={
                    "missing_prerequisites": check.missing_ids,
                    "missing": [m.model_dump(mode="json") for m in check.missing],
                },
            )

    async def _check_timetable(self, student: Student, course: Course, term: Term) -> None:
        clash = await self.schedule.find_student_clash(student.id, term.id, course.id)
        if clash.has_conflict:
            raise ScheduleClashError(clash.message, details=clash.model_dump(mode="json"))

    async def _check_capacity(self, course: Course, term: Term) -> None:
        if course.capacity is None:
            return
        result = await self.db.execute(
            select(func.count())
            .select_from(Enrollment)
            .where(
                Enrollment.course_id == course.id,
                Enrollment.term_id == term.id,
                Enrollment.status != EnrollmentStatus.WITHDRAWN.value,
            )
        )
        taken = result.scalar() or 0
        if taken >= course.capacity:
            raise CourseFullError(
                f"{course.name} is full",
                details={"capacity": course.capacity, "enrolled": taken},
            )

    async def _publish(self, event: DomainEvent) -> None:
        try:
            await self.event_bus.publish(event)
        except Exception as e:
            logger.error(
                "Failed to publish %s (%s): %s",
                event.event_type,
                event.event_id,
                str(e),
                exc_info=True,
            )

    async def _find_enrollment(
        self,
        student_id: str,
        course_id: str,
        term_id: str,
    ) -> Enrollment | None:
        query = select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.course_id == course_id,
            Enrollment.term_id == term_id,
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

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
