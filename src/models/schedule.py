# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Schedule slot and conflict models."""

from datetime import time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.common import ClassType


class ScheduleSlotRequest(BaseModel):
    """Proposed weekly meeting of a course.

    The start/end ordering is checked by the schedule service so that a bad
    range becomes a per-request failure rather than a parse error.
    """

    course_id: str = Field(description="Course ID")
    day_of_week: int = Field(ge=1, le=7, description="ISO day of week, 1 = Monday")
    start_time: time = Field(description="Start time")
    end_time: time = Field(description="End time")
    room: str | None = Field(default=None, max_length=50, description="Room label")
    class_type: ClassType = Field(default=ClassType.THEORY, description="Session kind")


class ScheduleSlotResponse(BaseModel):
    """Persisted schedule slot."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Slot ID")
    course_id: str = Field(description="Course ID")
    course_name: str | None = Field(default=None, description="Course name")
    day_of_week: int = Field(description="ISO day of week")
    day_name: str = Field(description="Day name")
    start_time: time = Field(description="Start time")
    end_time: time = Field(description="End time")
    room: str | None = Field(default=None, description="Room label")
    class_type: ClassType = Field(description="Session kind")


class ConflictReason(str, Enum):
    """Shared resource causing a schedule conflict."""

    TEACHER = "teacher"
    ROOM = "room"


class ScheduleConflictCheck(BaseModel):
    """Result of validating one slot against the existing schedule."""

    has_conflict: bool = Field(description="Whether the slot collides")
    message: str = Field(description="Human-readable outcome")
    reason: ConflictReason | None = Field(default=None, description="Shared resource")
    conflicting_course_id: str | None = Field(default=None)
    conflicting_course_name: str | None = Field(default=None)
    conflicting_slot_id: str | None = Field(default=None)
    conflicting_time_range: str | None = Field(default=None, description="HH:MM - HH:MM")


class SlotOutcome(BaseModel):
    """Per-request outcome of a batch schedule build."""

    index: int = Field(description="Position in the submitted batch")
    course_id: str = Field(description="Course ID")
    course_name: str | None = Field(default=None)
    day_of_week: int = Field(description="ISO day of week")
    accepted: bool = Field(description="Whether the slot was created")
    slot: ScheduleSlotResponse | None = Field(default=None)
    failure_kind: str | None = Field(default=None)
    reason: str | None = Field(default=None)


class BatchScheduleResult(BaseModel):
    """Outcome of building a schedule from many slot requests."""

    total_submitted: int
    total_created: int
    total_failed: int
    outcomes: list[SlotOutcome] = Field(default_factory=list)

    @property
    def created(self) -> list[ScheduleSlotResponse]:
        return [o.slot for o in self.outcomes if o.accepted and o.slot is not None]

    @property
    def rejected(self) -> list[SlotOutcome]:
        return [o for o in self.outcomes if not o.accepted]


class ClearScheduleResult(BaseModel):
    """Outcome of wiping every schedule slot."""

    deleted_count: int
