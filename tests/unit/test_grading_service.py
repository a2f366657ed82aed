# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the grading service."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from src.core.config import Settings
from src.domains.attendance.statistics import summarize
from src.domains.grading.service import GradingService
from src.domains.results import FailureKind
from src.models.enrollment import EnrollmentStatus
from src.models.grading import (
    EnrollmentGrades,
    EvaluationTypeConfig,
    GradeEntry,
    RecordGradesRequest,
)

TEACHER_ID = "teacher-1"


@pytest.fixture
def mock_db():
    """Create mock database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
def grading_service(mock_db):
    return GradingService(db=mock_db, settings=Settings(_env_file=None))  # type: ignore[call-arg]


@pytest.fixture
def sample_course():
    course = MagicMock()
    course.id = str(uuid4())
    course.code = "CS201"
    course.name = "Data Structures"
    course.credits = 4
    course.teacher_id = TEACHER_ID
    return course


@pytest.fixture
def sample_term():
    term = MagicMock()
    term.id = str(uuid4())
    term.name = "2025-I"
    term.year = 2025
    term.start_date = date(2025, 3, 10)
    return term


@pytest.fixture
def sample_student():
    student = MagicMock()
    student.id = str(uuid4())
    student.code = "20250001"
    student.full_name = "Ana Torres"
    return student


def _type(course, name, weight, is_active=True, requires_min_attendance=False, order=0):
    evaluation_type = MagicMock()
    evaluation_type.id = str(uuid4())
    evaluation_type.course_id = course.id
    evaluation_type.name = name
    evaluation_type.weight = Decimal(str(weight))
    evaluation_type.display_order = order
    evaluation_type.is_active = is_active
    evaluation_type.requires_min_attendance = requires_min_attendance
    return evaluation_type


def _enrollment(course, student, status="enrolled", final_average=None):
    enrollment = MagicMock()
    enrollment.id = str(uuid4())
    enrollment.course_id = course.id
    enrollment.student_id = student.id
    enrollment.status = status
    enrollment.final_average = final_average
    return enrollment


def _grade(enrollment, evaluation_type, value):
    grade = MagicMock()
    grade.enrollment_id = enrollment.id
    grade.evaluation_type_id = evaluation_type.id
    grade.value = Decimal(str(value))
    return grade


def _one(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _many(values):
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


def _rows(rows):
    result = MagicMock()
    result.all.return_value = rows
    return result


def _request(enrollment, *grades):
    return RecordGradesRequest(
        entries=[
            EnrollmentGrades(
                enrollment_id=enrollment.id,
                grades=[GradeEntry(evaluation_type_id=t.id, value=Decimal(str(v))) for t, v in grades],
            )
        ]
    )


class TestConfigureEvaluationTypes:
    """Tests for evaluation setup."""

    @pytest.mark.asyncio
    async def test_create_types(self, grading_service, mock_db, sample_course):
        mock_db.execute.side_effect = [_one(sample_course), _many([]), _many([])]

        result = await grading_service.configure_evaluation_types(
            TEACHER_ID,
            sample_course.id,
            [
                EvaluationTypeConfig(name="Midterm", weight=Decimal("40"), display_order=1),
                EvaluationTypeConfig(name="Final", weight=Decimal("60"), display_order=2),
            ],
        )

        config = result.value
        assert [t.name for t in config.evaluation_types] == ["Midterm", "Final"]
        assert config.total_weight == Decimal("100")
        assert config.is_complete is True
        assert mock_db.add.call_count == 2
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_incomplete_weights_allowed(self, grading_service, mock_db, sample_course):
        mock_db.execute.side_effect = [_one(sample_course), _many([]), _many([])]

        result = await grading_service.configure_evaluation_types(
            TEACHER_ID,
            sample_course.id,
            [EvaluationTypeConfig(name="Midterm", weight=Decimal("40"))],
        )

        assert result.value.is_complete is False
        assert result.value.total_weight == Decimal("40")

    @pytest.mark.asyncio
    async def test_foreign_teacher_forbidden(self, grading_service, mock_db, sample_course):
        mock_db.execute.return_value = _one(sample_course)

        result = await grading_service.configure_evaluation_types(
            "someone-else",
            sample_course.id,
            [EvaluationTypeConfig(name="Final", weight=Decimal("100"))],
        )

        assert result.failure.kind == FailureKind.FORBIDDEN

    @pytest.mark.asyncio
    async def test_weight_out_of_range(self, grading_service, mock_db, sample_course):
        mock_db.execute.return_value = _one(sample_course)

        result = await grading_service.configure_evaluation_types(
            TEACHER_ID,
            sample_course.id,
            [EvaluationTypeConfig(name="Final", weight=Decimal("120"))],
        )

        assert result.failure.kind == FailureKind.VALIDATION

    @pytest.mark.asyncio
    async def test_duplicate_names_case_insensitive(self, grading_service, mock_db, sample_course):
        mock_db.execute.return_value = _one(sample_course)

        result = await grading_service.configure_evaluation_types(
            TEACHER_ID,
            sample_course.id,
            [
                EvaluationTypeConfig(name="Exam", weight=Decimal("50")),
                EvaluationTypeConfig(name="exam ", weight=Decimal("50")),
            ],
        )

        assert result.failure.kind == FailureKind.VALIDATION
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_and_delete(self, grading_service, mock_db, sample_course):
        keep = _type(sample_course, "Midterm", 50)
        drop = _type(sample_course, "Quiz", 50)
        mock_db.execute.side_effect = [
            _one(sample_course),
            _many([keep, drop]),
            MagicMock(),  # delete grades of removed types
            MagicMock(),  # delete removed types
            MagicMock(),  # copy new weight onto grades
            _many([]),
        ]

        result = await grading_service.configure_evaluation_types(
            TEACHER_ID,
            sample_course.id,
            [
                EvaluationTypeConfig(id=keep.id, name="Midterm", weight=Decimal("60")),
                EvaluationTypeConfig(name="Final", weight=Decimal("40")),
            ],
        )

        assert result.value.deleted_count == 1
        assert result.value.is_complete is True
        assert keep.weight == Decimal("60")
        assert mock_db.execute.await_count == 6

    @pytest.mark.asyncio
    async def test_unknown_type_id(self, grading_service, mock_db, sample_course):
        mock_db.execute.side_effect = [_one(sample_course), _many([])]

        result = await grading_service.configure_evaluation_types(
            TEACHER_ID,
            sample_course.id,
            [EvaluationTypeConfig(id="ghost", name="Final", weight=Decimal("100"))],
        )

        assert result.failure.kind == FailureKind.NOT_FOUND
        assert result.failure.details == {"evaluation_type_ids": ["ghost"]}

    @pytest.mark.asyncio
    async def test_reconfiguration_finalizes_graded_enrollments(
        self, grading_service, mock_db, sample_course, sample_student, sample_term
    ):
        midterm = _type(sample_course, "Midterm", 60)
        final = _type(sample_course, "Final", 40, is_active=False)
        enrollment = _enrollment(sample_course, sample_student)
        mock_db.execute.side_effect = [
            _one(sample_course),
            _many([midterm, final]),
            _many([enrollment]),
            _many([_grade(enrollment, midterm, 14), _grade(enrollment, final, 16)]),
            _one(sample_student),
            _rows([(enrollment, sample_course, sample_term)]),
        ]

        result = await grading_service.configure_evaluation_types(
            TEACHER_ID,
            sample_course.id,
            [
                EvaluationTypeConfig(id=midterm.id, name="Midterm", weight=Decimal("60")),
                EvaluationTypeConfig(id=final.id, name="Final", weight=Decimal("40"), is_active=True),
            ],
        )

        assert result.ok
        assert enrollment.status == "approved"
        assert enrollment.final_average == Decimal("14.80")
        assert sample_student.accumulated_credits == 4


class TestRecordGrades:
    """Tests for grade recording."""

    @pytest.mark.asyncio
    async def test_record_and_finalize(
        self, grading_service, mock_db, sample_course, sample_student, sample_term
    ):
        midterm = _type(sample_course, "Midterm", 60)
        final = _type(sample_course, "Final", 40)
        enrollment = _enrollment(sample_course, sample_student)
        mock_db.execute.side_effect = [
            _one(sample_course),
            _many([midterm, final]),
            _many([enrollment]),
            _many([]),
            _one(sample_student),
            _rows([(enrollment, sample_course, sample_term)]),
        ]

        result = await grading_service.record_grades(
            TEACHER_ID, sample_course.id, _request(enrollment, (midterm, 14), (final, 16))
        )

        response = result.value
        assert response.grades_written == 2
        average = response.enrollments[0]
        assert average.average == Decimal("14.80")
        assert average.is_final is True
        assert average.passed is True
        assert average.status == EnrollmentStatus.APPROVED
        assert enrollment.status == "approved"
        assert sample_student.cumulative_gpa == Decimal("14.80")
        assert sample_student.current_cycle == 1
        assert mock_db.add.call_count == 2
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_regrade_replaces_value(
        self, grading_service, mock_db, sample_course, sample_student, sample_term
    ):
        midterm = _type(sample_course, "Midterm", 60)
        final = _type(sample_course, "Final", 40)
        enrollment = _enrollment(sample_course, sample_student)
        stored = _grade(enrollment, midterm, 8)
        mock_db.execute.side_effect = [
            _one(sample_course),
            _many([midterm, final]),
            _many([enrollment]),
            _many([stored]),
            _one(sample_student),
            _rows([]),
        ]

        result = await grading_service.record_grades(
            TEACHER_ID, sample_course.id, _request(enrollment, (midterm, 14))
        )

        assert stored.value == Decimal("14")
        mock_db.add.assert_not_called()
        average = result.value.enrollments[0]
        assert average.is_final is False
        assert average.average == Decimal("8.40")

    @pytest.mark.asyncio
    async def test_provisional_result_reopens_enrollment(
        self, grading_service, mock_db, sample_course, sample_student
    ):
        midterm = _type(sample_course, "Midterm", 60)
        final = _type(sample_course, "Final", 40)
        enrollment = _enrollment(sample_course, sample_student, status="approved", final_average=Decimal("15"))
        mock_db.execute.side_effect = [
            _one(sample_course),
            _many([midterm, final]),
            _many([enrollment]),
            _many([]),
            _one(sample_student),
            _rows([]),
        ]

        result = await grading_service.record_grades(
            TEACHER_ID, sample_course.id, _request(enrollment, (midterm, 15))
        )

        assert result.ok
        assert enrollment.status == "enrolled"
        assert enrollment.final_average is None

    @pytest.mark.asyncio
    async def test_value_out_of_scale(self, grading_service, mock_db, sample_course, sample_student):
        midterm = _type(sample_course, "Midterm", 100)
        enrollment = _enrollment(sample_course, sample_student)
        mock_db.execute.side_effect = [_one(sample_course), _many([midterm]), _many([enrollment])]

        result = await grading_service.record_grades(
            TEACHER_ID, sample_course.id, _request(enrollment, (midterm, 21))
        )

        assert result.failure.kind == FailureKind.VALIDATION
        mock_db.add.assert_not_called()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_enrollment_of_other_course(self, grading_service, mock_db, sample_course, sample_student):
        midterm = _type(sample_course, "Midterm", 100)
        enrollment = _enrollment(sample_course, sample_student)
        enrollment.course_id = str(uuid4())
        mock_db.execute.side_effect = [_one(sample_course), _many([midterm]), _many([enrollment])]

        result = await grading_service.record_grades(
            TEACHER_ID, sample_course.id, _request(enrollment, (midterm, 15))
        )

        assert result.failure.kind == FailureKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_withdrawn_enrollment(self, grading_service, mock_db, sample_course, sample_student):
        midterm = _type(sample_course, "Midterm", 100)
        enrollment = _enrollment(sample_course, sample_student, status="withdrawn")
        mock_db.execute.side_effect = [_one(sample_course), _many([midterm]), _many([enrollment])]

        result = await grading_service.record_grades(
            TEACHER_ID, sample_course.id, _request(enrollment, (midterm, 15))
        )

        assert result.failure.kind == FailureKind.BAD_REQUEST

    @pytest.mark.asyncio
    async def test_inactive_type_rejected(self, grading_service, mock_db, sample_course, sample_student):
        retired = _type(sample_course, "Quiz", 10, is_active=False)
        enrollment = _enrollment(sample_course, sample_student)
        mock_db.execute.side_effect = [_one(sample_course), _many([retired]), _many([enrollment])]

        result = await grading_service.record_grades(
            TEACHER_ID, sample_course.id, _request(enrollment, (retired, 15))
        )

        assert result.failure.kind == FailureKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_foreign_teacher(self, grading_service, mock_db, sample_course, sample_student):
        mock_db.execute.return_value = _one(sample_course)
        enrollment = _enrollment(sample_course, sample_student)

        result = await grading_service.record_grades(
            "someone-else", sample_course.id, _request(enrollment)
        )

        assert result.failure.kind == FailureKind.FORBIDDEN

    @pytest.mark.asyncio
    async def test_attendance_gate(self, grading_service, mock_db, sample_course, sample_student):
        final = _type(sample_course, "Final", 100, requires_min_attendance=True)
        enrollment = _enrollment(sample_course, sample_student)
        mock_db.execute.side_effect = [_one(sample_course), _many([final]), _many([enrollment])]

        with patch.object(
            grading_service.attendance,
            "compute_figures",
            AsyncMock(return_value=summarize(6, 10)),
        ):
            result = await grading_service.record_grades(
                TEACHER_ID, sample_course.id, _request(enrollment, (final, 18))
            )

        assert result.failure.kind == FailureKind.BAD_REQUEST
        assert result.failure.details["percentage"] == 60.0
        assert result.failure.details["required"] == 70.0
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_attendance_gate_passes(
        self, grading_service, mock_db, sample_course, sample_student, sample_term
    ):
        final = _type(sample_course, "Final", 100, requires_min_attendance=True)
        enrollment = _enrollment(sample_course, sample_student)
        mock_db.execute.side_effect = [
            _one(sample_course),
            _many([final]),
            _many([enrollment]),
            _many([]),
            _one(sample_student),
            _rows([(enrollment, sample_course, sample_term)]),
        ]

        with patch.object(
            grading_service.attendance,
            "compute_figures",
            AsyncMock(return_value=summarize(8, 10)),
        ) as figures:
            result = await grading_service.record_grades(
                TEACHER_ID, sample_course.id, _request(enrollment, (final, 9))
            )

        figures.assert_awaited_once_with(sample_student.id, sample_course.id)
        assert result.value.enrollments[0].status == EnrollmentStatus.FAILED


class TestFinalAverageAndRecord:
    """Tests for read-side grading operations."""

    @pytest.mark.asyncio
    async def test_compute_final_average_does_not_write(self, grading_service, mock_db, sample_course, sample_student):
        midterm = _type(sample_course, "Midterm", 60)
        final = _type(sample_course, "Final", 40)
        enrollment = _enrollment(sample_course, sample_student)
        mock_db.execute.side_effect = [
            _one(enrollment),
            _many([midterm, final]),
            _many([_grade(enrollment, midterm, 14), _grade(enrollment, final, 16)]),
        ]

        result = await grading_service.compute_final_average(enrollment.id)

        assert result.value.average == Decimal("14.80")
        assert result.value.status == EnrollmentStatus.APPROVED
        assert enrollment.status == "enrolled"
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_compute_final_average_not_found(self, grading_service, mock_db):
        mock_db.execute.return_value = _one(None)

        result = await grading_service.compute_final_average("missing")

        assert result.failure.kind == FailureKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_refresh_student_standing(self, grading_service, mock_db, sample_course, sample_student, sample_term):
        enrollment = _enrollment(sample_course, sample_student, status="failed", final_average=Decimal("9"))
        mock_db.execute.side_effect = [
            _one(sample_student),
            _rows([(enrollment, sample_course, sample_term)]),
        ]

        result = await grading_service.refresh_student_standing(sample_student.id)

        assert result.value.cumulative_gpa == Decimal("9.00")
        assert result.value.accumulated_credits == 0
        assert sample_student.term_gpa == Decimal("9.00")
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_academic_record_groups_terms(self, grading_service, mock_db, sample_student):
        first_term = MagicMock(id="t1", year=2024, start_date=date(2024, 3, 1))
        first_term.name = "2024-I"
        second_term = MagicMock(id="t2", year=2024, start_date=date(2024, 8, 1))
        second_term.name = "2024-II"

        def course(code, credits):
            c = MagicMock(id=str(uuid4()), code=code, credits=credits)
            c.name = code
            return c

        algebra, physics, calculus = course("MA101", 4), course("PH101", 2), course("MA201", 3)
        rows = [
            (_enrollment(algebra, sample_student, "approved", Decimal("16")), algebra, first_term),
            (_enrollment(physics, sample_student, "failed", Decimal("10")), physics, first_term),
            (_enrollment(calculus, sample_student, "approved", Decimal("12")), calculus, second_term),
        ]
        mock_db.execute.side_effect = [_one(sample_student), _rows(rows)]

        result = await grading_service.get_academic_record(sample_student.id)

        record = result.value
        assert [t.term_name for t in record.terms] == ["2024-I", "2024-II"]
        assert record.terms[0].term_gpa == Decimal("14.00")
        assert record.terms[0].approved_credits == 4
        assert record.terms[1].cumulative_gpa == Decimal("13.33")
        assert record.standing.current_cycle == 2
        assert record.standing.accumulated_credits == 7
