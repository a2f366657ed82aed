# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event handlers that turn enrollment events into notifications.

Each handler stores an in-app notification in its own session and then
pushes the same payload through the injected NotificationSink. A failed push
is logged and leaves the stored notification in place.

Usage:
    from src.infrastructure.notifications import register_notification_handlers

    register_notification_handlers(get_event_bus(), get_sessionmaker(), sink)
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.infrastructure.events import (
    EventBus,
    EventTypes,
    StudentEnrolledEvent,
    StudentWithdrawnEvent,
)
from src.infrastructure.notifications.channels import InAppChannel, NotificationPayload
from src.infrastructure.notifications.sink import LoggingNotificationSink, NotificationSink

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE_ACADEMIC = "academic"
ACTION_ENROLLMENT = "enrollment"
ACTION_WITHDRAWAL = "withdrawal"


class EnrollmentNotificationHandler:
    """Notifies students about their enrollments and withdrawals.

    Attributes:
        session_factory: Creates a session per handled event.
        sink: Real-time delivery used after the record is stored.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sink: NotificationSink | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.sink = sink or LoggingNotificationSink()

    async def on_student_enrolled(self, event: StudentEnrolledEvent) -> None:
        """Handle StudentEnrolledEvent."""
        if not event.user_id:
            logger.debug("Enrollment %s has no user to notify", event.enrollment_id)
            return

        await self._deliver(
            NotificationPayload(
                notification_type=NOTIFICATION_TYPE_ACADEMIC,
                action=ACTION_ENROLLMENT,
                title="Enrollment confirmed",
                message=f"You have been enrolled in {event.course_name} for term {event.term_name}.",
                recipient_id=event.user_id,
                data=self._event_data(event),
            )
        )

    async def on_student_withdrawn(self, event: StudentWithdrawnEvent) -> None:
        """Handle StudentWithdrawnEvent."""
        if not event.user_id:
            logger.debug("Withdrawal %s has no user to notify", event.enrollment_id)
            return

        await self._deliver(
            NotificationPayload(
                notification_type=NOTIFICATION_TYPE_ACADEMIC,
                action=ACTION_WITHDRAWAL,
                title="Withdrawal confirmed",
                message=f"You have withdrawn from {event.course_name} for term {event.term_name}.",
                recipient_id=event.user_id,
                data=self._event_data(event),
            )
        )

    @staticmethod
    def _event_data(event: StudentEnrolledEvent | StudentWithdrawnEvent) -> dict[str, str]:
        return {
            "enrollment_id": event.enrollment_id,
            "student_id": event.student_id,
            "course_id": event.course_id,
            "course_name": event.course_name,
            "term_id": event.term_id,
            "term_name": event.term_name,
        }

    async def _deliver(self, payload: NotificationPayload) -> None:
        in_app = InAppChannel()
        async with self.session_factory() as session:
            in_app.set_session(session)
            stored = await in_app.send(payload)
            if not stored.succeeded:
                await session.rollback()
                logger.warning(
                    "Notification for user %s not stored: %s",
                    payload.recipient_id,
                    stored.error_message,
                )
                return
            await session.commit()

        try:
            await self.sink.push(
                payload.recipient_id,
                {"notification_id": stored.message_id, **payload.to_dict()},
            )
        except Exception as e:
            logger.warning(
                "Push failed for notification %s: %s",
                stored.message_id,
                str(e),
            )


def register_notification_handlers(
    bus: EventBus,
    session_factory: async_sessionmaker[AsyncSession],
    sink: NotificationSink | None = None,
) -> EnrollmentNotificationHandler:
    """Subscribe the enrollment notification handler to the bus.

    Call once at application startup.

    Returns:
        The subscribed handler, for unsubscribe on shutdown.
    """
    handler = EnrollmentNotificationHandler(session_factory, sink)
    bus.subscribe(EventTypes.Enrollment.STUDENT_ENROLLED, handler.on_student_enrolled)
    bus.subscribe(EventTypes.Enrollment.STUDENT_WITHDRAWN, handler.on_student_withdrawn)
    logger.info("Registered enrollment notification handlers")
    return handler
