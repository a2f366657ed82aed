# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for grading, averages and academic standing."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from src.domains.grading.service import GradingService
from src.domains.results import FailureKind
from src.infrastructure.database.models import Enrollment, Grade, Student
from src.models.enrollment import EnrollmentStatus
from src.models.grading import (
    EnrollmentGrades,
    EvaluationTypeConfig,
    GradeEntry,
    RecordGradesRequest,
)


@pytest.fixture
def service(db_session, settings) -> GradingService:
    return GradingService(db_session, settings)


async def _configure(service: GradingService, campus, midterm: str = "60", final: str = "40"):
    result = await service.configure_evaluation_types(
        campus.teacher.id,
        campus.algebra.id,
        [
            EvaluationTypeConfig(name="Midterm", weight=Decimal(midterm), display_order=1),
            EvaluationTypeConfig(name="Final exam", weight=Decimal(final), display_order=2),
        ],
    )
    assert result.ok
    return result.value.evaluation_types


def _grades(enrollment_id: str, *pairs: tuple[str, str]) -> RecordGradesRequest:
    return RecordGradesRequest(
        entries=[
            EnrollmentGrades(
                enrollment_id=enrollment_id,
                grades=[GradeEntry(evaluation_type_id=t, value=Decimal(v)) for t, v in pairs],
            )
        ]
    )


@pytest.mark.integration
class TestRecordGrades:
    """Tests for record_grades() end to end."""

    @pytest.mark.asyncio
    async def test_weighted_final_average_is_stored(
        self, service, db_session, campus, enroll_directly
    ) -> None:
        enrollment = await enroll_directly(campus.ana, campus.algebra, campus.term)
        midterm, final = await _configure(service, campus)

        result = await service.record_grades(
            campus.teacher.id,
            campus.algebra.id,
            _grades(enrollment.id, (midterm.id, "14"), (final.id, "16")),
        )

        average = result.value.enrollments[0]
        assert result.value.grades_written == 2
        assert average.average == Decimal("14.80")
        assert average.is_final is True
        assert average.passed is True
        assert average.status == EnrollmentStatus.APPROVED

        await db_session.refresh(enrollment)
        assert enrollment.final_average == Decimal("14.80")
        assert enrollment.status == EnrollmentStatus.APPROVED.value

    @pytest.mark.asyncio
    async def test_partial_grades_stay_provisional(
        self, service, db_session, campus, enroll_directly
    ) -> None:
        enrollment = await enroll_directly(campus.ana, campus.algebra, campus.term)
        midterm, _ = await _configure(service, campus)

        result = await service.record_grades(
            campus.teacher.id,
            campus.algebra.id,
            _grades(enrollment.id, (midterm.id, "14")),
        )

        average = result.value.enrollments[0]
        assert average.is_final is False
        assert average.passed is None
        await db_session.refresh(enrollment)
        assert enrollment.final_average is None
        assert enrollment.status == EnrollmentStatus.ENROLLED.value

    @pytest.mark.asyncio
    async def test_regrading_replaces_the_grade(
        self, service, db_session, campus, enroll_directly
    ) -> None:
        enrollment = await enroll_directly(campus.ana, campus.algebra, campus.term)
        midterm, final = await _configure(service, campus)

        await service.record_grades(
            campus.teacher.id,
            campus.algebra.id,
            _grades(enrollment.id, (midterm.id, "14"), (final.id, "16")),
        )
        result = await service.record_grades(
            campus.teacher.id,
            campus.algebra.id,
            _grades(enrollment.id, (final.id, "6")),
        )

        # 14 * 0.6 + 6 * 0.4
        assert result.value.enrollments[0].average == Decimal("10.80")
        assert result.value.enrollments[0].status == EnrollmentStatus.APPROVED
        grades = (
            await db_session.execute(select(Grade).where(Grade.enrollment_id == enrollment.id))
        ).scalars().all()
        assert len(grades) == 2

    @pytest.mark.asyncio
    async def test_other_teacher_is_denied(self, service, campus, enroll_directly) -> None:
        enrollment = await enroll_directly(campus.ana, campus.algebra, campus.term)
        midterm, _ = await _configure(service, campus)

        result = await service.record_grades(
            campus.other_teacher.id,
            campus.algebra.id,
            _grades(enrollment.id, (midterm.id, "14")),
        )

        assert result.failure.kind == FailureKind.FORBIDDEN


@pytest.mark.integration
class TestStanding:
    """Academic record and standing built from finalized enrollments."""

    @pytest.mark.asyncio
    async def test_academic_record_lists_finalized_course(
        self, service, db_session, campus, enroll_directly
    ) -> None:
        enrollment = await enroll_directly(campus.ana, campus.algebra, campus.term)
        await enroll_directly(campus.ana, campus.calculus, campus.term)
        midterm, final = await _configure(service, campus)
        await service.record_grades(
            campus.teacher.id,
            campus.algebra.id,
            _grades(enrollment.id, (midterm.id, "14"), (final.id, "16")),
        )

        record = (await service.get_academic_record(campus.ana.id)).value

        assert [t.term_name for t in record.terms] == ["2025-I"]
        courses = record.terms[0].courses
        assert [c.course_code for c in courses] == ["MAT101"]
        assert courses[0].final_average == Decimal("14.80")
        assert record.terms[0].approved_credits == 4
        assert record.standing.accumulated_credits == 4
        assert record.standing.cumulative_gpa == Decimal("14.80")

        student = (
            await db_session.execute(select(Student).where(Student.id == campus.ana.id))
        ).scalar_one()
        await db_session.refresh(student)
        assert student.accumulated_credits == 4

    @pytest.mark.asyncio
    async def test_incomplete_reconfiguration_reopens_the_enrollment(
        self, service, db_session, campus, enroll_directly
    ) -> None:
        enrollment = await enroll_directly(campus.ana, campus.algebra, campus.term)
        midterm, final = await _configure(service, campus)
        await service.record_grades(
            campus.teacher.id,
            campus.algebra.id,
            _grades(enrollment.id, (midterm.id, "14"), (final.id, "16")),
        )

        result = await service.configure_evaluation_types(
            campus.teacher.id,
            campus.algebra.id,
            [
                EvaluationTypeConfig(id=midterm.id, name="Midterm", weight=Decimal("60"), display_order=1),
                EvaluationTypeConfig(id=final.id, name="Final exam", weight=Decimal("30"), display_order=2),
            ],
        )

        assert result.value.is_complete is False
        assert result.value.total_weight == Decimal("90")
        refreshed = (
            await db_session.execute(select(Enrollment).where(Enrollment.id == enrollment.id))
        ).scalar_one()
        await db_session.refresh(refreshed)
        assert refreshed.final_average is None
        assert refreshed.status == EnrollmentStatus.ENROLLED.value
        stored = (
            await db_session.execute(select(Grade.weight).where(Grade.evaluation_type_id == final.id))
        ).scalar_one()
        assert stored == Decimal("30")
        standing = (await service.refresh_student_standing(campus.ana.id)).value
        assert standing.accumulated_credits == 0
