# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for attendance recording and statistics."""

from datetime import date

import pytest
from sqlalchemy import select

from src.domains.attendance.service import AttendanceService
from src.domains.results import FailureKind
from src.infrastructure.database.models import AttendanceRecord
from src.models.attendance import (
    AttendanceBatchEntry,
    AttendanceBatchRequest,
    AttendanceRecordRequest,
)
from src.models.common import ClassType

FIRST_SESSION = date(2025, 3, 11)
SECOND_SESSION = date(2025, 3, 13)


@pytest.fixture
def service(db_session, settings) -> AttendanceService:
    return AttendanceService(db_session, settings)


async def _records(db_session, student_id: str) -> list[AttendanceRecord]:
    result = await db_session.execute(
        select(AttendanceRecord).where(AttendanceRecord.student_id == student_id)
    )
    return list(result.scalars().all())


def _batch(course_id: str, session_date: date, *entries: tuple[str, bool], **kwargs):
    return AttendanceBatchRequest(
        course_id=course_id,
        session_date=session_date,
        entries=[AttendanceBatchEntry(student_id=s, is_present=p) for s, p in entries],
        **kwargs,
    )


@pytest.mark.integration
class TestRecordBatch:
    """Tests for record_batch() upserts."""

    @pytest.mark.asyncio
    async def test_second_batch_updates_the_same_row(
        self, service, db_session, campus, enroll_directly
    ) -> None:
        await enroll_directly(campus.ana, campus.algebra, campus.term)

        first = await service.record_batch(
            _batch(campus.algebra.id, FIRST_SESSION, (campus.ana.id, False)),
            campus.teacher.id,
        )
        second = await service.record_batch(
            _batch(campus.algebra.id, FIRST_SESSION, (campus.ana.id, True)),
            campus.teacher.id,
        )

        assert (first.value.created, first.value.updated) == (1, 0)
        assert (second.value.created, second.value.updated) == (0, 1)
        records = await _records(db_session, campus.ana.id)
        assert len(records) == 1
        assert records[0].is_present is True

    @pytest.mark.asyncio
    async def test_student_listed_twice_keeps_last_entry(
        self, service, db_session, campus, enroll_directly
    ) -> None:
        await enroll_directly(campus.ana, campus.algebra, campus.term)

        result = await service.record_batch(
            _batch(
                campus.algebra.id,
                FIRST_SESSION,
                (campus.ana.id, False),
                (campus.ana.id, True),
            ),
        )

        assert result.value.created == 1
        records = await _records(db_session, campus.ana.id)
        assert [r.is_present for r in records] == [True]

    @pytest.mark.asyncio
    async def test_rows_fail_without_blocking_the_batch(
        self, service, db_session, campus, enroll_directly
    ) -> None:
        await enroll_directly(campus.ana, campus.algebra, campus.term, status="withdrawn")

        result = await service.record_batch(
            _batch(
                campus.algebra.id,
                FIRST_SESSION,
                (campus.ana.id, True),
                (campus.luis.id, True),
            ),
        )

        assert result.ok
        assert result.value.created == 0
        kinds = {f.student_id: f.kind for f in result.value.failed}
        assert kinds == {
            campus.ana.id: FailureKind.BAD_REQUEST.value,
            campus.luis.id: FailureKind.NOT_FOUND.value,
        }

    @pytest.mark.asyncio
    async def test_other_teacher_is_denied(self, service, campus) -> None:
        result = await service.record_batch(
            _batch(campus.algebra.id, FIRST_SESSION, (campus.ana.id, True)),
            campus.other_teacher.id,
        )

        assert result.failure.kind == FailureKind.FORBIDDEN


@pytest.mark.integration
class TestRecordOne:
    """Tests for record_one() duplicates."""

    @pytest.mark.asyncio
    async def test_second_record_for_session_is_conflict(
        self, service, campus, enroll_directly
    ) -> None:
        await enroll_directly(campus.ana, campus.algebra, campus.term)
        request = AttendanceRecordRequest(
            student_id=campus.ana.id,
            course_id=campus.algebra.id,
            session_date=FIRST_SESSION,
            is_present=True,
        )

        first = await service.record_one(request)
        second = await service.record_one(request)

        assert first.ok
        assert second.failure.kind == FailureKind.CONFLICT


@pytest.mark.integration
class TestCourseSummary:
    """Tests for course_summary() over stored sessions."""

    @pytest.mark.asyncio
    async def test_percentages_over_two_sessions(
        self, service, campus, enroll_directly
    ) -> None:
        await enroll_directly(campus.ana, campus.algebra, campus.term)
        await enroll_directly(campus.luis, campus.algebra, campus.term)
        await service.record_batch(
            _batch(
                campus.algebra.id,
                FIRST_SESSION,
                (campus.ana.id, True),
                (campus.luis.id, False),
            )
        )
        await service.record_batch(
            _batch(
                campus.algebra.id,
                SECOND_SESSION,
                (campus.ana.id, True),
                (campus.luis.id, True),
            )
        )

        result = await service.course_summary(campus.algebra.id)

        summary = result.value
        assert summary.total_sessions == 2
        assert summary.start_date == campus.term.start_date
        by_student = {s.student_id: s for s in summary.students}
        assert by_student[campus.ana.id].percentage == 100.0
        assert by_student[campus.luis.id].percentage == 50.0
        assert by_student[campus.luis.id].absent == 1
        assert summary.average_percentage == 75.0

    @pytest.mark.asyncio
    async def test_theory_and_practice_on_one_date_are_two_sessions(
        self, service, campus, enroll_directly
    ) -> None:
        await enroll_directly(campus.ana, campus.algebra, campus.term)
        await service.record_batch(
            _batch(campus.algebra.id, FIRST_SESSION, (campus.ana.id, True))
        )
        await service.record_batch(
            _batch(
                campus.algebra.id,
                FIRST_SESSION,
                (campus.ana.id, False),
                class_type=ClassType.PRACTICE,
            )
        )

        summary = (await service.course_summary(campus.algebra.id)).value
        statistics = (await service.student_statistics(campus.ana.id, campus.algebra.id)).value

        assert summary.total_sessions == 2
        assert summary.students[0].percentage == 50.0
        assert statistics.present == 1
        assert statistics.total_sessions == 2

    @pytest.mark.asyncio
    async def test_withdrawn_students_are_left_out(
        self, service, campus, enroll_directly
    ) -> None:
        await enroll_directly(campus.ana, campus.algebra, campus.term)
        await enroll_directly(campus.luis, campus.algebra, campus.term, status="withdrawn")

        summary = (await service.course_summary(campus.algebra.id)).value

        assert [s.student_id for s in summary.students] == [campus.ana.id]
        assert summary.total_sessions == 0
