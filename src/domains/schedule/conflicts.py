# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Schedule conflict rules.

Two weekly slots collide when they fall on the same day, their half-open
time intervals overlap, and they share a resource: the same teacher
(both assigned) or the same room (both specified). Touching endpoints,
e.g. 08:00-10:00 and 10:00-12:00, do not overlap.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import time

from src.models.schedule import ConflictReason
from src.utils.datetime import format_clock


@dataclass(frozen=True)
class SlotWindow:
    """A slot reduced to what the conflict rules look at."""

    course_id: str
    course_name: str
    teacher_id: str | None
    day_of_week: int
    start_time: time
    end_time: time
    room: str | None = None
    slot_id: str | None = None


@dataclass(frozen=True)
class SlotConflict:
    """An existing slot that collides with a candidate."""

    other: SlotWindow
    reason: ConflictReason


def intervals_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
    """Half-open interval overlap test."""
    return start1 < end2 and start2 < end1


def normalize_room(room: str | None) -> str | None:
    if room is None:
        return None
    room = room.strip().lower()
    return room or None


def format_time_range(start: time, end: time) -> str:
    """Format a slot range as HH:MM - HH:MM."""
    return f"{format_clock(start)} - {format_clock(end)}"


def conflict_reason(candidate: SlotWindow, other: SlotWindow) -> ConflictReason | None:
    """Return the shared resource if the two slots collide."""
    if candidate.day_of_week != other.day_of_week:
        return None
    if not intervals_overlap(
        candidate.start_time, candidate.end_time, other.start_time, other.end_time
    ):
        return None

    if candidate.teacher_id and candidate.teacher_id == other.teacher_id:
        return ConflictReason.TEACHER

    room = normalize_room(candidate.room)
    if room and room == normalize_room(other.room):
        return ConflictReason.ROOM

    return None


def find_conflict(
    candidate: SlotWindow,
    existing: Iterable[SlotWindow],
    exclude_slot_id: str | None = None,
) -> SlotConflict | None:
    """Find the first existing slot that collides with the candidate.

    Args:
        candidate: Proposed slot.
        existing: Slots already accepted, in the order they should be checked.
        exclude_slot_id: Slot being edited in place.

    Returns:
        The first conflict found, or None.
    """
    for other in existing:
        if exclude_slot_id is not None and other.slot_id == exclude_slot_id:
            continue
        reason = conflict_reason(candidate, other)
        if reason is not None:
            return SlotConflict(other=other, reason=reason)
    return None


def find_time_clash(
    candidates: Iterable[SlotWindow],
    existing: Iterable[SlotWindow],
) -> tuple[SlotWindow, SlotWindow] | None:
    """Find two slots that overlap in time regardless of teacher or room.

    Used for a student's own timetable, where any overlap is a clash.
    """
    existing = list(existing)
    for candidate in candidates:
        for other in existing:
            if candidate.day_of_week == other.day_of_week and intervals_overlap(
                candidate.start_time, candidate.end_time, other.start_time, other.end_time
            ):
                return candidate, other
    return None


def describe_conflict(conflict: SlotConflict) -> str:
    """Human-readable conflict message."""
    other = conflict.other
    time_range = format_time_range(other.start_time, other.end_time)
    if conflict.reason == ConflictReason.TEACHER:
        return f"Teacher already teaches {other.course_name} at {time_range}"
    return f"Room {other.room} is already used by {other.course_name} at {time_range}"
