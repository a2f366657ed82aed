# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event type names and domain event payloads.

Event types are dotted strings grouped by domain so pattern subscribers
(``enrollment.*``) keep working as new events are added. Each event kind has a
frozen dataclass carrying the identifiers subscribers need; the bus routes on
its ``event_type``.

Adding a new event:
1. Add the constant to the appropriate class in EventTypes
2. Add a DomainEvent subclass whose event_type returns it
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar
from uuid import uuid4

from src.utils.datetime import utc_now


class EventTypes:
    """All event types organized by domain."""

    class Enrollment:
        """Enrollment lifecycle events."""

        STUDENT_ENROLLED = "enrollment.student.enrolled"
        STUDENT_WITHDRAWN = "enrollment.student.withdrawn"


class EventPatterns:
    """Wildcard patterns for subscribing to multiple events."""

    ALL_ENROLLMENT = "enrollment.*"

    # Global wildcard
    ALL = "*"


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base for in-process domain events.

    Attributes:
        event_id: Unique event identifier.
        occurred_at: When the event was raised.
    """

    event_type: ClassVar[str] = "domain.event"

    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = {
            key: value
            for key, value in self.__dict__.items()
            if key not in ("event_id", "occurred_at")
        }
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": data,
        }


@dataclass(frozen=True, kw_only=True)
class StudentEnrolledEvent(DomainEvent):
    """A student was enrolled in a course for a term."""

    event_type: ClassVar[str] = EventTypes.Enrollment.STUDENT_ENROLLED

    enrollment_id: str
    student_id: str
    course_id: str
    term_id: str
    user_id: str | None = None
    course_name: str = ""
    term_name: str = ""
    is_authorized: bool = False


@dataclass(frozen=True, kw_only=True)
class StudentWithdrawnEvent(DomainEvent):
    """A student withdrew from a course."""

    event_type: ClassVar[str] = EventTypes.Enrollment.STUDENT_WITHDRAWN

    enrollment_id: str
    student_id: str
    course_id: str
    term_id: str
    user_id: str | None = None
    course_name: str = ""
    term_name: str = ""
