# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event infrastructure module.

This module provides an in-memory event bus for decoupled communication
between the academic services and their side effects.

Components:
- EventBus: In-memory pub/sub with pattern matching
- EventTypes: Centralized event type constants
- DomainEvent and its subclasses: typed event payloads

Quick Start:
    from src.infrastructure.events import get_event_bus, EventTypes

    event_bus = get_event_bus()
    event_bus.subscribe(EventTypes.Enrollment.STUDENT_ENROLLED, my_handler)
"""

from src.infrastructure.events.bus import (
    EventBus,
    EventHandler,
    get_event_bus,
    reset_event_bus,
)
from src.infrastructure.events.types import (
    DomainEvent,
    EventPatterns,
    EventTypes,
    StudentEnrolledEvent,
    StudentWithdrawnEvent,
)

__all__ = [
    # Event Bus
    "EventBus",
    "EventHandler",
    "get_event_bus",
    "reset_event_bus",
    # Event Types
    "EventTypes",
    "EventPatterns",
    "DomainEvent",
    "StudentEnrolledEvent",
    "StudentWithdrawnEvent",
]
