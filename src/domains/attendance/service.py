# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attendance service.

This module provides the AttendanceService class for:
- Recording one attendance record (duplicates rejected)
- Recording a whole session as a batch of per-row upserts
- Course attendance summaries over a date range
- Per-student statistics including the final exam attendance gate
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings, get_settings
from src.domains.academic_term.service import TermService
from src.domains.attendance.statistics import (
    AttendanceFigures,
    average_percentage,
    meets_minimum,
    summarize,
)
from src.domains.results import (
    BadRequestError,
    ConflictError,
    FailureKind,
    ForbiddenError,
    NotFoundError,
    ServiceError,
    returns_result,
)
from src.infrastructure.database import is_unique_violation
from src.infrastructure.database.models import (
    AttendanceRecord,
    Course,
    Enrollment,
    Student,
    Term,
    new_id,
)
from src.models.attendance import (
    AttendanceBatchRequest,
    AttendanceBatchResponse,
    AttendanceRecordRequest,
    AttendanceResponse,
    AttendanceRowFailure,
    AttendanceStatistics,
    CourseAttendanceSummary,
    StudentAttendanceSummary,
)
from src.models.enrollment import EnrollmentStatus
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class AttendanceServiceError(ServiceError):
    """Base exception for attendance service errors."""

    pass


class CourseNotFoundError(AttendanceServiceError, NotFoundError):
    """Raised when course is not found."""

    pass


class StudentNotFoundError(AttendanceServiceError, NotFoundError):
    """Raised when student is not found."""

    pass


class NotEnrolledError(AttendanceServiceError, NotFoundError):
    """Raised when the student has no enrollment in the course."""

    pass


class WithdrawnEnrollmentError(AttendanceServiceError, BadRequestError):
    """Raised when the student withdrew from the course."""

    pass


class DuplicateAttendanceError(AttendanceServiceError, ConflictError):
    """Raised when the session already has a record for the student."""

    pass


class CourseAccessDeniedError(AttendanceServiceError, ForbiddenError):
    """Raised when a teacher records attendance for a course they do not teach."""

    pass


class AttendanceService:
    """Service for attendance records and statistics.

    Attributes:
        db: Async database session.
        settings: Application settings.
    """

    def __init__(self, db: AsyncSession, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or get_settings()

    @returns_result
    async def record_one(self, request: AttendanceRecordRequest) -> AttendanceResponse:
        """Record one student's attendance at one session.

        Args:
            request: Attendance data.

        Returns:
            The created record.

        Raises:
            StudentNotFoundError, CourseNotFoundError: If not found.
            NotEnrolledError: If the student never enrolled in the course.
            WithdrawnEnrollmentError: If the student withdrew.
            DuplicateAttendanceError: If a record exists for the session.
        """
        student = await self._get_student(request.student_id)
        course = await self._get_course(request.course_id)
        await self._ensure_enrolled(student.id, course.id)

        result = await self.db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.student_id == student.id,
                AttendanceRecord.course_id == course.id,
                AttendanceRecord.session_date == request.session_date,
                AttendanceRecord.class_type == request.class_type.value,
            )
        )
        if result.scalar_one_or_none():
            raise DuplicateAttendanceError(
                f"Attendance already recorded for {request.session_date} ({request.class_type.value})"
            )

        record = AttendanceRecord(
            id=new_id(),
            student_id=student.id,
            course_id=course.id,
            session_date=request.session_date,
            class_type=request.class_type.value,
            is_present=request.is_present,
            notes=request.notes,
            recorded_at=utc_now(),
        )
        self.db.add(record)

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not is_unique_violation(e):
                raise
            raise DuplicateAttendanceError(
                f"Attendance already recorded for {request.session_date} ({request.class_type.value})"
            ) from e
        await self.db.refresh(record)

        logger.info(
            "Recorded attendance: student=%s, course=%s, date=%s, present=%s",
            student.id,
            course.id,
            request.session_date,
            request.is_present,
        )

        return AttendanceResponse.model_validate(record)

    @returns_result
    async def record_batch(
        self,
        request: AttendanceBatchRequest,
        teacher_id: str | None = None,
    ) -> AttendanceBatchResponse:
        """Record a session for many students, upserting row by row.

        Each row runs in its own savepoint so one failure never blocks the
        others. A student listed twice keeps the last entry.

        Args:
            request: Session and per-student entries.
            teacher_id: Acting teacher; must own the course when given.

        Returns:
            Created and updated counts plus per-row failures.

        Raises:
            CourseNotFoundError: If the course does not exist.
            CourseAccessDeniedError: If the teacher does not own the course.
        """
        course = await self._get_course(request.course_id)
        if teacher_id is not None and course.teacher_id != str(teacher_id):
            raise CourseAccessDeniedError(f"Teacher does not teach {course.name}")

        entries = {str(e.student_id): e for e in request.entries}
        response = AttendanceBatchResponse(
            course_id=course.id,
            session_date=request.session_date,
            class_type=request.class_type,
        )
        if not entries:
            return response

        student_ids = list(entries)
        existing = await self._session_records(
            course.id, request.session_date, request.class_type.value, student_ids
        )
        statuses = await self._enrollment_statuses(course.id, student_ids)

        for student_id, entry in entries.items():
            found = statuses.get(student_id)
            if not found:
                response.failed.append(
                    AttendanceRowFailure(
                        student_id=student_id,
                        kind=FailureKind.NOT_FOUND.value,
                        reason="Student is not enrolled in this course",
                    )
                )
                continue
            if found == {EnrollmentStatus.WITHDRAWN.value}:
                response.failed.append(
                    AttendanceRowFailure(
                        student_id=student_id,
                        kind=FailureKind.BAD_REQUEST.value,
                        reason="Student withdrew from this course",
                    )
                )
                continue

            record = existing.get(student_id)
            try:
                async with self.db.begin_nested():
                    if record is not None:
                        record.is_present = entry.is_present
                        record.notes = entry.notes
                    else:
                        self.db.add(
                            AttendanceRecord(
                                id=new_id(),
                                student_id=student_id,
                                course_id=course.id,
                                session_date=request.session_date,
                                class_type=request.class_type.value,
                                is_present=entry.is_present,
                                notes=entry.notes,
                                recorded_at=utc_now(),
                            )
                        )
            except IntegrityError as e:
                logger.warning(
                    "Attendance row rejected: student=%s, course=%s: %s",
                    student_id,
                    course.id,
                    str(e.orig or e),
                )
                response.failed.append(
                    AttendanceRowFailure(
                        student_id=student_id,
                        kind=FailureKind.CONFLICT.value,
                        reason="Attendance record conflicts with an existing one",
                    )
                )
                continue
            except SQLAlchemyError as e:
                logger.error(
                    "Attendance row failed: student=%s, course=%s: %s",
                    student_id,
                    course.id,
                    str(e),
                    exc_info=True,
                )
                response.failed.append(
                    AttendanceRowFailure(
                        student_id=student_id,
                        kind=FailureKind.BAD_REQUEST.value,
                        reason=str(e),
                    )
                )
                continue

            if record is not None:
                response.updated += 1
            else:
                response.created += 1

        await self.db.commit()

        logger.info(
            "Recorded attendance batch: course=%s, date=%s, created=%d, updated=%d, failed=%d",
            course.id,
            request.session_date,
            response.created,
            response.updated,
            len(response.failed),
        )

        return response

    @returns_result
    async def course_summary(
        self,
        course_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> CourseAttendanceSummary:
        """Summarize attendance of every enrolled student of a course.

        Without explicit dates the active term's dates are used; without an
        active term every record counts.

        Args:
            course_id: Course identifier.
            start_date: First day included.
            end_date: Last day included.

        Raises:
            CourseNotFoundError: If the course does not exist.
        """
        course = await self._get_course(course_id)
        term = await TermService(self.db).load_active_term()
        start_date, end_date = self._resolve_range(term, start_date, end_date)

        total_sessions = await self._count_sessions(course.id, start_date, end_date)

        query = (
            select(Student)
            .join(Enrollment, Enrollment.student_id == Student.id)
            .where(
                Enrollment.course_id == course.id,
                Enrollment.status != EnrollmentStatus.WITHDRAWN.value,
            )
            .order_by(Student.last_name, Student.first_name)
            .distinct()
        )
        if term is not None:
            query = query.where(Enrollment.term_id == term.id)
        result = await self.db.execute(query)
        students = list(result.scalars().all())

        present_counts = await self._present_counts(course.id, start_date, end_date)

        summaries: list[StudentAttendanceSummary] = []
        for student in students:
            figures = summarize(present_counts.get(student.id, 0), total_sessions)
            summaries.append(
                StudentAttendanceSummary(
                    student_id=student.id,
                    student_code=student.code,
                    student_name=student.full_name,
                    total_sessions=figures.total_sessions,
                    present=figures.present,
                    absent=figures.absent,
                    percentage=figures.percentage,
                )
            )

        return CourseAttendanceSummary(
            course_id=course.id,
            course_name=course.name,
            start_date=start_date,
            end_date=end_date,
            total_sessions=total_sessions,
            students=summaries,
            average_percentage=average_percentage(s.percentage for s in summaries),
        )

    @returns_result
    async def student_statistics(self, student_id: str, course_id: str) -> AttendanceStatistics:
        """Attendance figures of one student plus the final exam gate.

        Raises:
            StudentNotFoundError, CourseNotFoundError: If not found.
        """
        student = await self._get_student(student_id)
        course = await self._get_course(course_id)

        figures = await self.compute_figures(student.id, course.id)
        minimum = self.settings.attendance.min_percentage_for_final_exam
        allowed = meets_minimum(figures, minimum)

        return AttendanceStatistics(
            student_id=student.id,
            course_id=course.id,
            total_sessions=figures.total_sessions,
            present=figures.present,
            absent=figures.absent,
            percentage=figures.percentage,
            min_percentage_required=minimum,
            can_take_final_exam=allowed,
            block_message=None
            if allowed
            else f"Attendance {figures.percentage}% is below the required {minimum}%",
        )

    async def compute_figures(
        self,
        student_id: str,
        course_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> AttendanceFigures:
        """Attendance counts of one student, defaulting to the active term."""
        term = await TermService(self.db).load_active_term()
        start_date, end_date = self._resolve_range(term, start_date, end_date)

        total_sessions = await self._count_sessions(course_id, start_date, end_date)
        query = select(func.count()).select_from(AttendanceRecord).where(
            AttendanceRecord.course_id == str(course_id),
            AttendanceRecord.student_id == str(student_id),
            AttendanceRecord.is_present.is_(True),
            *self._range_criteria(start_date, end_date),
        )
        result = await self.db.execute(query)
        return summarize(result.scalar() or 0, total_sessions)

    @staticmethod
    def _resolve_range(
        term: Term | None,
        start_date: date | None,
        end_date: date | None,
    ) -> tuple[date | None, date | None]:
        if start_date is None and end_date is None and term is not None:
            return term.start_date, term.end_date
        return start_date, end_date

    @staticmethod
    def _range_criteria(start_date: date | None, end_date: date | None) -> list:
        criteria = []
        if start_date is not None:
            criteria.append(AttendanceRecord.session_date >= start_date)
        if end_date is not None:
            criteria.append(AttendanceRecord.session_date <= end_date)
        return criteria

    async def _count_sessions(
        self,
        course_id: str,
        start_date: date | None,
        end_date: date | None,
    ) -> int:
        sessions = (
            select(AttendanceRecord.session_date, AttendanceRecord.class_type)
            .where(
                AttendanceRecord.course_id == str(course_id),
                *self._range_criteria(start_date, end_date),
            )
            .distinct()
            .subquery()
        )
        result = await self.db.execute(select(func.count()).select_from(sessions))
        return result.scalar() or 0

    async def _present_counts(
        self,
        course_id: str,
        start_date: date | None,
        end_date: date | None,
    ) -> dict[str, int]:
        query = (
            select(AttendanceRecord.student_id, func.count())
            .where(
                AttendanceRecord.course_id == course_id,
                AttendanceRecord.is_present.is_(True),
                *self._range_criteria(start_date, end_date),
            )
            .group_by(AttendanceRecord.student_id)
        )
        result = await self.db.execute(query)
        return {student_id: count for student_id, count in result.all()}

    async def _session_records(
        self,
        course_id: str,
        session_date: date,
        class_type: str,
        student_ids: list[str],
    ) -> dict[str, AttendanceRecord]:
        result = await self.db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.course_id == course_id,
                AttendanceRecord.session_date == session_date,
                AttendanceRecord.class_type == class_type,
                AttendanceRecord.student_id.in_(student_ids),
            )
        )
        return {record.student_id: record for record in result.scalars().all()}

    async def _enrollment_statuses(
        self,
        course_id: str,
        student_ids: list[str],
    ) -> dict[str, set[str]]:
        result = await self.db.execute(
            select(Enrollment.student_id, Enrollment.status).where(
                Enrollment.course_id == course_id,
                Enrollment.student_id.in_(student_ids),
            )
        )
        statuses: dict[str, set[str]] = {}
        for student_id, status in result.all():
            statuses.setdefault(student_id, set()).add(status)
        return statuses

    async def _ensure_enrolled(self, student_id: str, course_id: str) -> None:
        statuses = (await self._enrollment_statuses(course_id, [student_id])).get(student_id)
        if not statuses:
            raise NotEnrolledError("Student is not enrolled in this course")
        if statuses == {EnrollmentStatus.WITHDRAWN.value}:
            raise WithdrawnEnrollmentError("Student withdrew from this course")

    async def _get_course(self, course_id: str) -> Course:
        result = await self.db.execute(select(Course).where(Course.id == str(course_id)))
        course = result.scalar_one_or_none()
        if not course:
            raise CourseNotFoundError(f"Course {course_id} not found")
        return course

    async def _get_student(self, student_id: str) -> Student:
        result = await self.db.execute(select(Student).where(Student.id == str(student_id)))
        student = result.scalar_one_or_none()
        if not student:
            raise StudentNotFoundError(f"Student {student_id} not found")
        return student
