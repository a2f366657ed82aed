# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Real-time push interface for notifications.

The host application supplies a NotificationSink backed by its real-time
transport (websocket hub, message broker, ...). The notification handlers
receive it by injection and call push() after the in-app record is stored.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """Delivers a notification payload to a connected user."""

    @abstractmethod
    async def push(self, user_id: str, payload: dict[str, Any]) -> None:
        """Push a payload to a user.

        Args:
            user_id: Recipient user ID.
            payload: JSON-serializable notification content.

        Raises:
            Exception: Any transport error; callers log and continue.
        """
        ...


class LoggingNotificationSink(NotificationSink):
    """Sink that only logs each payload.

    Default when no real-time transport is configured.
    """

    async def push(self, user_id: str, payload: dict[str, Any]) -> None:
        logger.info(
            "Push notification for user %s: %s (%s)",
            user_id,
            payload.get("title"),
            payload.get("action"),
        )
