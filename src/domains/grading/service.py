# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading service for evaluation setups, grades and standing.

This module provides the GradingService class for:
- Configuring the weighted evaluation types of a course
- Recording grades for many enrollments at once
- Computing final averages and enrollment outcomes
- Refreshing a student's GPA, credits and cycle
- Building the term-by-term academic record

A grade batch is validated completely before anything is written, so a single
bad entry leaves every grade untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings, get_settings
from src.domains.attendance.service import AttendanceService
from src.domains.attendance.statistics import meets_minimum
from src.domains.grading.calculator import (
    AverageComputation,
    FinalizedCourse,
    Standing,
    compute_average,
    compute_standing,
    weighted_gpa,
)
from src.domains.results import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
    ValidationError,
    returns_result,
)
from src.infrastructure.database.models import (
    Course,
    Enrollment,
    EvaluationType,
    Grade,
    Student,
    Term,
    new_id,
)
from src.models.enrollment import EnrollmentStatus
from src.models.grading import (
    AcademicRecordCourse,
    AcademicRecordResponse,
    AcademicRecordTerm,
    EvaluationConfigurationResponse,
    EvaluationTypeConfig,
    EvaluationTypeResponse,
    FinalAverageResponse,
    RecordGradesRequest,
    RecordGradesResponse,
    StudentStandingResponse,
)
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

FINALIZED_STATUSES = (EnrollmentStatus.APPROVED.value, EnrollmentStatus.FAILED.value)


class GradingServiceError(ServiceError):
    """Base exception for grading service errors."""

    pass


class CourseNotFoundError(GradingServiceError, NotFoundError):
    """Raised when course is not found."""

    pass


class StudentNotFoundError(GradingServiceError, NotFoundError):
    """Raised when student is not found."""

    pass


class EnrollmentNotFoundError(GradingServiceError, NotFoundError):
    """Raised when an enrollment is missing or belongs to another course."""

    pass


class EvaluationTypeNotFoundError(GradingServiceError, NotFoundError):
    """Raised when an evaluation type is missing, inactive or foreign."""

    pass


class CourseAccessDeniedError(GradingServiceError, ForbiddenError):
    """Raised when the teacher does not teach the course."""

    pass


class InvalidWeightError(GradingServiceError, ValidationError):
    """Raised when an evaluation weight falls outside 0-100."""

    pass


class DuplicateEvaluationNameError(GradingServiceError, ValidationError):
    """Raised when two evaluation types share a name."""

    pass


class InvalidGradeError(GradingServiceError, ValidationError):
    """Raised when a grade value falls outside the grading scale."""

    pass


class WithdrawnEnrollmentError(GradingServiceError, BadRequestError):
    """Raised when grading a withdrawn enrollment."""

    pass


class AttendanceRequirementError(GradingServiceError, BadRequestError):
    """Raised when attendance is too low for an attendance-gated evaluation."""

    pass


class GradingService:
    """Service for evaluation configuration, grades and standing.

    Attributes:
        db: Async database session.
        settings: Application settings.
        attendance: Attendance service sharing the session.
    """

    def __init__(self, db: AsyncSession, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.attendance = AttendanceService(db, self.settings)

    @returns_result
    async def configure_evaluation_types(
        self,
        teacher_id: str,
        course_id: str,
        types: Sequence[EvaluationTypeConfig],
    ) -> EvaluationConfigurationResponse:
        """Replace the evaluation setup of a course.

        Entries with an ID update that type, entries without one are created,
        and existing types not listed are deleted together with their grades.
        A changed weight is copied onto every grade of that type. Enrollments
        of the course are re-evaluated against the new setup.

        Args:
            teacher_id: Acting teacher.
            course_id: Course identifier.
            types: Desired evaluation types.

        Returns:
            The resulting setup with its active weight total.

        Raises:
            CourseNotFoundError: If the course does not exist.
            CourseAccessDeniedError: If the teacher does not teach the course.
            InvalidWeightError: If a weight is outside 0-100.
            DuplicateEvaluationNameError: If names repeat (case-insensitive).
            EvaluationTypeNotFoundError: If an ID is not a type of the course.
        """
        course = await self._get_course(course_id)
        self._ensure_owner(course, teacher_id)
        self._validate_configuration(types)

        existing = {t.id: t for t in await self._load_types(course.id)}

        unknown = [str(c.id) for c in types if c.id is not None and str(c.id) not in existing]
        if unknown:
            raise EvaluationTypeNotFoundError(
                "Evaluation types do not belong to this course",
                details={"evaluation_type_ids": unknown},
            )

        kept_ids = {str(c.id) for c in types if c.id is not None}
        removed_ids = [type_id for type_id in existing if type_id not in kept_ids]
        if removed_ids:
            await self.db.execute(delete(Grade).where(Grade.evaluation_type_id.in_(removed_ids)))
            await self.db.execute(delete(EvaluationType).where(EvaluationType.id.in_(removed_ids)))

        configured: list[EvaluationType] = []
        for config in types:
            if config.id is None:
                evaluation_type = EvaluationType(
                    id=new_id(),
                    course_id=course.id,
                    name=config.name,
                    weight=config.weight,
                    display_order=config.display_order,
                    is_active=config.is_active,
                    requires_min_attendance=config.requires_min_attendance,
                )
                self.db.add(evaluation_type)
            else:
                evaluation_type = existing[str(config.id)]
                if Decimal(evaluation_type.weight) != config.weight:
                    await self.db.execute(
                        update(Grade)
                        .where(Grade.evaluation_type_id == evaluation_type.id)
                        .values(weight=config.weight)
                    )
                evaluation_type.name = config.name
                evaluation_type.weight = config.weight
                evaluation_type.display_order = config.display_order
                evaluation_type.is_active = config.is_active
                evaluation_type.requires_min_attendance = config.requires_min_attendance
            configured.append(evaluation_type)

        await self.db.flush()
        await self._recompute_course(course, configured)
        await self.db.commit()

        logger.info(
            "Configured evaluation types: course=%s, types=%d, deleted=%d",
            course.id,
            len(configured),
            len(removed_ids),
        )

        return self._configuration_response(course.id, configured, deleted_count=len(removed_ids))

    @returns_result
    async def list_evaluation_types(self, course_id: str) -> EvaluationConfigurationResponse:
        """Return the evaluation setup of a course ordered by display order.

        Raises:
            CourseNotFoundError: If the course does not exist.
        """
        course = await self._get_course(course_id)
        types = await self._load_types(course.id)
        return self._configuration_response(course.id, types)

    @returns_result
    async def record_grades(
        self,
        teacher_id: str,
        course_id: str,
        request: RecordGradesRequest,
    ) -> RecordGradesResponse:
        """Record grades for enrollments of a course.

        Each (enrollment, evaluation type) pair holds one grade; recording it
        again replaces the value. Affected enrollments are re-evaluated and the
        standing of their students refreshed.

        Args:
            teacher_id: Acting teacher.
            course_id: Course identifier.
            request: Grades per enrollment.

        Returns:
            Number of grades written and the resulting averages.

        Raises:
            CourseNotFoundError: If the course does not exist.
            CourseAccessDeniedError: If the teacher does not teach the course.
            EnrollmentNotFoundError: If an enrollment is not of this course.
            WithdrawnEnrollmentError: If an enrollment was withdrawn.
            EvaluationTypeNotFoundError: If a type is not an active type of the course.
            InvalidGradeError: If a value is outside the grading scale.
            AttendanceRequirementError: If attendance is too low for a gated type.
        """
        course = await self._get_course(course_id)
        self._ensure_owner(course, teacher_id)

        types = await self._load_types(course.id)
        active_types = {t.id: t for t in types if t.is_active}

        enrollment_ids = list(dict.fromkeys(str(e.enrollment_id) for e in request.entries))
        if not enrollment_ids:
            return RecordGradesResponse(course_id=course.id, grades_written=0)

        result = await self.db.execute(select(Enrollment).where(Enrollment.id.in_(enrollment_ids)))
        enrollments = {e.id: e for e in result.scalars().all()}

        self._validate_grades(course, request, enrollments, active_types)
        await self._check_attendance(course, request, enrollments, active_types)

        result = await self.db.execute(select(Grade).where(Grade.enrollment_id.in_(enrollment_ids)))
        stored = {(g.enrollment_id, g.evaluation_type_id): g for g in result.scalars().all()}

        written = 0
        for entry in request.entries:
            enrollment_id = str(entry.enrollment_id)
            for grade_entry in entry.grades:
                type_id = str(grade_entry.evaluation_type_id)
                evaluation_type = active_types[type_id]
                grade = stored.get((enrollment_id, type_id))
                if grade is None:
                    grade = Grade(
                        id=new_id(),
                        enrollment_id=enrollment_id,
                        evaluation_type_id=type_id,
                        value=grade_entry.value,
                        weight=evaluation_type.weight,
                        graded_at=utc_now(),
                        observations=grade_entry.observations,
                    )
                    self.db.add(grade)
                    stored[(enrollment_id, type_id)] = grade
                else:
                    grade.value = grade_entry.value
                    grade.weight = evaluation_type.weight
                    grade.graded_at = utc_now()
                    grade.observations = grade_entry.observations
                written += 1

        values: dict[str, dict[str, Decimal]] = {}
        for (enrollment_id, type_id), grade in stored.items():
            values.setdefault(enrollment_id, {})[type_id] = Decimal(grade.value)

        averages: list[FinalAverageResponse] = []
        for enrollment_id in enrollment_ids:
            enrollment = enrollments[enrollment_id]
            computation = self._compute(types, values.get(enrollment_id, {}))
            self._apply_outcome(enrollment, computation)
            averages.append(self._average_response(enrollment, computation))

        await self.db.flush()
        for student_id in dict.fromkeys(enrollments[e].student_id for e in enrollment_ids):
            await self._refresh_standing(student_id)
        await self.db.commit()

        logger.info(
            "Recorded grades: course=%s, enrollments=%d, grades=%d",
            course.id,
            len(enrollment_ids),
            written,
        )

        return RecordGradesResponse(course_id=course.id, grades_written=written, enrollments=averages)

    @returns_result
    async def compute_final_average(self, enrollment_id: str) -> FinalAverageResponse:
        """Compute the weighted average of an enrollment without writing it.

        Raises:
            EnrollmentNotFoundError: If the enrollment does not exist.
        """
        result = await self.db.execute(select(Enrollment).where(Enrollment.id == str(enrollment_id)))
        enrollment = result.scalar_one_or_none()
        if not enrollment:
            raise EnrollmentNotFoundError(f"Enrollment {enrollment_id} not found")

        types = await self._load_types(enrollment.course_id)
        result = await self.db.execute(select(Grade).where(Grade.enrollment_id == enrollment.id))
        values = {g.evaluation_type_id: Decimal(g.value) for g in result.scalars().all()}

        return self._average_response(enrollment, self._compute(types, values))

    @returns_result
    async def refresh_student_standing(self, student_id: str) -> StudentStandingResponse:
        """Recompute and store GPA, accumulated credits and cycle of a student.

        Raises:
            StudentNotFoundError: If the student does not exist.
        """
        standing = await self._refresh_standing(student_id)
        await self.db.commit()
        return self._standing_response(str(student_id), standing)

    @returns_result
    async def get_academic_record(self, student_id: str) -> AcademicRecordResponse:
        """Build the term-by-term record of finalized courses.

        Raises:
            StudentNotFoundError: If the student does not exist.
        """
        student = await self._get_student(student_id)
        rows = await self._finalized_rows(student.id)

        terms: list[AcademicRecordTerm] = []
        finalized: list[FinalizedCourse] = []
        for enrollment, course, term in rows:
            if not terms or terms[-1].term_id != term.id:
                terms.append(
                    AcademicRecordTerm(
                        term_id=term.id,
                        term_name=term.name,
                        year=term.year,
                        term_gpa=Decimal("0.00"),
                        cumulative_gpa=Decimal("0.00"),
                        approved_credits=0,
                    )
                )
            record_term = terms[-1]
            record_term.courses.append(
                AcademicRecordCourse(
                    course_id=course.id,
                    course_code=course.code,
                    course_name=course.name,
                    credits=course.credits,
                    final_average=enrollment.final_average,
                    status=EnrollmentStatus(enrollment.status),
                )
            )
            finalized.append(self._finalized_course(enrollment, course, term))

            term_courses = [c for c in finalized if c.term_id == term.id]
            record_term.term_gpa = weighted_gpa(term_courses)
            record_term.cumulative_gpa = weighted_gpa(finalized)
            record_term.approved_credits = sum(c.credits for c in term_courses if c.approved)

        return AcademicRecordResponse(
            student_id=student.id,
            student_code=student.code,
            student_name=student.full_name,
            terms=terms,
            standing=self._standing_response(student.id, compute_standing(finalized)),
        )

    def _validate_configuration(self, types: Sequence[EvaluationTypeConfig]) -> None:
        seen: set[str] = set()
        for config in types:
            if not Decimal("0") <= config.weight <= Decimal("100"):
                raise InvalidWeightError(
                    f"Weight of '{config.name}' must be between 0 and 100",
                    details={"name": config.name, "weight": str(config.weight)},
                )
            key = config.name.strip().casefold()
            if key in seen:
                raise DuplicateEvaluationNameError(
                    f"Evaluation name '{config.name}' is repeated",
                    details={"name": config.name},
                )
            seen.add(key)

    def _validate_grades(
        self,
        course: Course,
        request: RecordGradesRequest,
        enrollments: dict[str, Enrollment],
        active_types: dict[str, EvaluationType],
    ) -> None:
        grading = self.settings.grading
        for entry in request.entries:
            enrollment = enrollments.get(str(entry.enrollment_id))
            if enrollment is None or enrollment.course_id != course.id:
                raise EnrollmentNotFoundError(
                    f"Enrollment {entry.enrollment_id} not found in {course.name}",
                    details={"enrollment_id": str(entry.enrollment_id)},
                )
            if enrollment.status == EnrollmentStatus.WITHDRAWN.value:
                raise WithdrawnEnrollmentError(
                    f"Enrollment {enrollment.id} was withdrawn",
                    details={"enrollment_id": enrollment.id},
                )
            for grade_entry in entry.grades:
                if str(grade_entry.evaluation_type_id) not in active_types:
                    raise EvaluationTypeNotFoundError(
                        f"Evaluation type {grade_entry.evaluation_type_id} is not active in {course.name}",
                        details={"evaluation_type_id": str(grade_entry.evaluation_type_id)},
                    )
                if not grading.min_grade <= grade_entry.value <= grading.max_grade:
                    raise InvalidGradeError(
                        f"Grade must be between {grading.min_grade} and {grading.max_grade}",
                        details={
                            "enrollment_id": enrollment.id,
                            "evaluation_type_id": str(grade_entry.evaluation_type_id),
                            "value": str(grade_entry.value),
                        },
                    )

    async def _check_attendance(
        self,
        course: Course,
        request: RecordGradesRequest,
        enrollments: dict[str, Enrollment],
        active_types: dict[str, EvaluationType],
    ) -> None:
        minimum = self.settings.attendance.min_percentage_for_final_exam
        checked: set[str] = set()
        for entry in request.entries:
            gated = any(
                active_types[str(g.evaluation_type_id)].requires_min_attendance for g in entry.grades
            )
            enrollment = enrollments[str(entry.enrollment_id)]
            if not gated or enrollment.student_id in checked:
                continue
            checked.add(enrollment.student_id)

            figures = await self.attendance.compute_figures(enrollment.student_id, course.id)
            if not meets_minimum(figures, minimum):
                raise AttendanceRequirementError(
                    f"Attendance {figures.percentage}% is below the required {minimum}%",
                    details={
                        "enrollment_id": enrollment.id,
                        "student_id": enrollment.student_id,
                        "percentage": figures.percentage,
                        "required": minimum,
                    },
                )

    async def _recompute_course(self, course: Course, types: Sequence[EvaluationType]) -> None:
        """Re-evaluate every graded, non-withdrawn enrollment of a course."""
        result = await self.db.execute(
            select(Enrollment).where(
                Enrollment.course_id == course.id,
                Enrollment.status != EnrollmentStatus.WITHDRAWN.value,
            )
        )
        enrollments = list(result.scalars().all())
        if not enrollments:
            return

        result = await self.db.execute(
            select(Grade).where(Grade.enrollment_id.in_([e.id for e in enrollments]))
        )
        values: dict[str, dict[str, Decimal]] = {}
        for grade in result.scalars().all():
            values.setdefault(grade.enrollment_id, {})[grade.evaluation_type_id] = Decimal(grade.value)

        changed: list[str] = []
        for enrollment in enrollments:
            before = (enrollment.status, enrollment.final_average)
            self._apply_outcome(enrollment, self._compute(types, values.get(enrollment.id, {})))
            if (enrollment.status, enrollment.final_average) != before:
                changed.append(enrollment.student_id)

        if changed:
            await self.db.flush()
            for student_id in dict.fromkeys(changed):
                await self._refresh_standing(student_id)

    async def _refresh_standing(self, student_id: str) -> Standing:
        student = await self._get_student(student_id)
        rows = await self._finalized_rows(student.id)
        standing = compute_standing([self._finalized_course(*row) for row in rows])

        student.cumulative_gpa = standing.cumulative_gpa
        student.term_gpa = standing.term_gpa
        student.accumulated_credits = standing.accumulated_credits
        student.current_cycle = standing.current_cycle

        logger.debug(
            "Refreshed standing: student=%s, gpa=%s, credits=%d, cycle=%d",
            student.id,
            standing.cumulative_gpa,
            standing.accumulated_credits,
            standing.current_cycle,
        )
        return standing

    async def _finalized_rows(self, student_id: str) -> list[tuple[Enrollment, Course, Term]]:
        result = await self.db.execute(
            select(Enrollment, Course, Term)
            .join(Course, Course.id == Enrollment.course_id)
            .join(Term, Term.id == Enrollment.term_id)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.status.in_(FINALIZED_STATUSES),
                Enrollment.final_average.is_not(None),
            )
            .order_by(Term.start_date, Course.code)
        )
        return [tuple(row) for row in result.all()]

    @staticmethod
    def _finalized_course(enrollment: Enrollment, course: Course, term: Term) -> FinalizedCourse:
        return FinalizedCourse(
            term_id=term.id,
            term_start=term.start_date,
            credits=course.credits,
            average=Decimal(enrollment.final_average),
            approved=enrollment.status == EnrollmentStatus.APPROVED.value,
        )

    def _compute(
        self,
        types: Sequence[EvaluationType],
        values: dict[str, Decimal],
    ) -> AverageComputation:
        return compute_average(
            types,
            values,
            passing_grade=self.settings.grading.passing_grade,
            weight_total=self.settings.grading.weight_total,
        )

    @staticmethod
    def _apply_outcome(enrollment: Enrollment, computation: AverageComputation) -> None:
        if enrollment.status == EnrollmentStatus.WITHDRAWN.value:
            return
        if computation.is_final:
            enrollment.final_average = computation.average
            enrollment.status = (
                EnrollmentStatus.APPROVED.value if computation.passed else EnrollmentStatus.FAILED.value
            )
        else:
            enrollment.final_average = None
            if enrollment.status in FINALIZED_STATUSES:
                enrollment.status = EnrollmentStatus.ENROLLED.value

    @staticmethod
    def _projected_status(enrollment: Enrollment, computation: AverageComputation) -> EnrollmentStatus:
        if enrollment.status == EnrollmentStatus.WITHDRAWN.value:
            return EnrollmentStatus.WITHDRAWN
        if computation.is_final:
            return EnrollmentStatus.APPROVED if computation.passed else EnrollmentStatus.FAILED
        return EnrollmentStatus.ENROLLED

    def _average_response(
        self,
        enrollment: Enrollment,
        computation: AverageComputation,
    ) -> FinalAverageResponse:
        return FinalAverageResponse(
            enrollment_id=enrollment.id,
            average=computation.average,
            is_final=computation.is_final,
            passed=computation.passed,
            status=self._projected_status(enrollment, computation),
            graded_types=computation.graded_types,
            active_types=computation.active_types,
            total_weight=computation.total_weight,
        )

    def _configuration_response(
        self,
        course_id: str,
        types: Sequence[EvaluationType],
        deleted_count: int = 0,
    ) -> EvaluationConfigurationResponse:
        ordered = sorted(types, key=lambda t: (t.display_order, t.name))
        total_weight = sum((Decimal(t.weight) for t in ordered if t.is_active), Decimal("0"))
        return EvaluationConfigurationResponse(
            course_id=course_id,
            evaluation_types=[EvaluationTypeResponse.model_validate(t) for t in ordered],
            total_weight=total_weight,
            is_complete=total_weight == self.settings.grading.weight_total,
            deleted_count=deleted_count,
        )

    @staticmethod
    def _standing_response(student_id: str, standing: Standing) -> StudentStandingResponse:
        return StudentStandingResponse(
            student_id=student_id,
            cumulative_gpa=standing.cumulative_gpa,
            term_gpa=standing.term_gpa,
            accumulated_credits=standing.accumulated_credits,
            current_cycle=standing.current_cycle,
        )

    @staticmethod
    def _ensure_owner(course: Course, teacher_id: str) -> None:
        if course.teacher_id != str(teacher_id):
            raise CourseAccessDeniedError(
                f"Teacher does not teach {course.name}",
                details={"course_id": course.id},
            )

    async def _load_types(self, course_id: str) -> list[EvaluationType]:
        result = await self.db.execute(
            select(EvaluationType)
            .where(EvaluationType.course_id == str(course_id))
            .order_by(EvaluationType.display_order, EvaluationType.name)
        )
        return list(result.scalars().all())

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
