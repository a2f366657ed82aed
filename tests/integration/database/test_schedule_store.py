# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for batch timetable building."""

from datetime import time

import pytest
from sqlalchemy import func, select

from src.domains.results import FailureKind
from src.domains.schedule.service import ScheduleService
from src.infrastructure.database.models import ScheduleSlot
from src.models.schedule import ScheduleSlotRequest

MONDAY = 1


@pytest.fixture
def service(db_session) -> ScheduleService:
    return ScheduleService(db_session)


def _slot(course_id: str, start: int, end: int, room: str) -> ScheduleSlotRequest:
    return ScheduleSlotRequest(
        course_id=course_id,
        day_of_week=MONDAY,
        start_time=time(start),
        end_time=time(end),
        room=room,
    )


async def _slot_count(db_session) -> int:
    return (await db_session.execute(select(func.count()).select_from(ScheduleSlot))).scalar()


@pytest.mark.integration
class TestBuildSchedule:
    """Tests for build_schedule() with a real store."""

    @pytest.mark.asyncio
    async def test_batch_accepts_rejects_accepts(self, service, db_session, campus) -> None:
        result = await service.build_schedule(
            [
                _slot(campus.algebra.id, 8, 10, "A101"),
                # Same teacher, overlapping the slot above
                _slot(campus.calculus.id, 9, 11, "B202"),
                _slot(campus.calculus.id, 10, 12, "B202"),
            ]
        )

        batch = result.value
        assert [o.accepted for o in batch.outcomes] == [True, False, True]
        assert batch.outcomes[1].failure_kind == FailureKind.CONFLICT.value
        assert (batch.total_created, batch.total_failed) == (2, 1)
        assert await _slot_count(db_session) == 2

    @pytest.mark.asyncio
    async def test_later_batch_checks_stored_slots(self, service, db_session, campus) -> None:
        await service.build_schedule([_slot(campus.algebra.id, 8, 10, "A101")])

        result = await service.build_schedule([_slot(campus.algebra.id, 9, 10, "C303")])

        assert result.value.outcomes[0].accepted is False
        assert result.value.total_created == 0
        assert await _slot_count(db_session) == 1

    @pytest.mark.asyncio
    async def test_accepted_slots_are_listed_by_course(self, service, campus) -> None:
        await service.build_schedule(
            [
                _slot(campus.algebra.id, 14, 16, "A101"),
                _slot(campus.algebra.id, 8, 10, "A101"),
            ]
        )

        slots = (await service.list_course_slots(campus.algebra.id)).value

        assert [s.start_time for s in slots] == [time(8), time(14)]
        assert all(s.course_name == "Algebra" for s in slots)
