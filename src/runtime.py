# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application startup and shutdown for the academic rules engine.

Hosts embedding the services call start() once before the first operation
and stop() on shutdown. Startup configures logging, opens the database pool
and subscribes the enrollment notification handler to the event bus.

Example:
    >>> await start(get_settings(), sink=WebSocketSink())
    >>> async with get_session() as session:
    ...     result = await EnrollmentService(session).enroll(student_id, course_id, term_id)
    >>> await stop()
"""

from src.core.config import Settings, get_settings
from src.infrastructure.database import close_database, get_sessionmaker, init_database
from src.infrastructure.events import EventTypes, get_event_bus
from src.infrastructure.notifications import (
    EnrollmentNotificationHandler,
    NotificationSink,
    register_notification_handlers,
)
from src.utils.logging import bind_context, clear_context, get_logger, setup_logging

logger = get_logger(__name__)

_handler: EnrollmentNotificationHandler | None = None


async def start(
    settings: Settings | None = None,
    sink: NotificationSink | None = None,
) -> EnrollmentNotificationHandler:
    """Bring up logging, the database pool and notification handlers.

    Args:
        settings: Settings to use; defaults to get_settings().
        sink: Real-time notification delivery. Falls back to the logging sink.

    Returns:
        The registered notification handler.
    """
    global _handler

    settings = settings or get_settings()
    setup_logging(settings)
    bind_context(environment=settings.environment)

    await init_database(settings)
    if _handler is None:
        _handler = register_notification_handlers(get_event_bus(), get_sessionmaker(), sink)

    logger.info(
        "Academic rules engine started",
        environment=settings.environment,
        database_pool=settings.database.uses_pool,
    )
    return _handler


async def stop() -> None:
    """Unsubscribe notification handlers and close the database pool."""
    global _handler

    if _handler is not None:
        bus = get_event_bus()
        bus.unsubscribe(EventTypes.Enrollment.STUDENT_ENROLLED, _handler.on_student_enrolled)
        bus.unsubscribe(EventTypes.Enrollment.STUDENT_WITHDRAWN, _handler.on_student_withdrawn)
        _handler = None

    await close_database()
    logger.info("Academic rules engine stopped")
    clear_context()
