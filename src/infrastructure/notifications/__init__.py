# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification system for enrollment events.

Enrollment and withdrawal events are turned into in-app notification
records and then pushed through an injected NotificationSink.

Usage:
    from src.infrastructure.notifications import register_notification_handlers

    register_notification_handlers(event_bus, sessionmaker, sink=my_sink)
"""

from src.infrastructure.notifications.channels import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    InAppChannel,
    NotificationPayload,
)
from src.infrastructure.notifications.handlers import (
    EnrollmentNotificationHandler,
    register_notification_handlers,
)
from src.infrastructure.notifications.sink import LoggingNotificationSink, NotificationSink

__all__ = [
    "BaseChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryStatus",
    "InAppChannel",
    "NotificationPayload",
    "NotificationSink",
    "LoggingNotificationSink",
    "EnrollmentNotificationHandler",
    "register_notification_handlers",
]
