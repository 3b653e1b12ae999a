"""
Notification repository (persistence).

Existence checks and inserts for the `notifications` table. The pre-insert
existence check is a fast path only; the unique constraint on
(event_id, user_id, type) makes a concurrent duplicate insert fail, and that
failure is reported as "already notified" rather than as an error.
"""

from __future__ import annotations

import logging

from postgrest.exceptions import APIError
from supabase import Client  # type: ignore[import-not-found]

from domain.notification import Notification, NotificationType
from repositories.rows import is_unique_violation, response_rows

logger = logging.getLogger(__name__)

_NOTIFICATIONS_TABLE: str = "notifications"


class NotificationRepository:
    def __init__(self, client: Client) -> None:
        self._client = client

    def exists(self, event_id: str, user_id: str, notification_type: NotificationType) -> bool:
        response = (
            self._client.table(_NOTIFICATIONS_TABLE)
            .select("id")
            .eq("event_id", event_id)
            .eq("user_id", user_id)
            .eq("type", notification_type.value)
            .limit(1)
            .execute()
        )
        rows = response_rows(response, action="check notification")
        return bool(rows)

    def insert(self, notification: Notification) -> bool:
        """
        Insert a notification.

        Returns:
            True if a row was written, False if one already existed for the
            same (event_id, user_id, type).
        """

        try:
            response = (
                self._client.table(_NOTIFICATIONS_TABLE)
                .insert(notification.to_row())
                .execute()
            )
        except APIError as e:
            if is_unique_violation(e):
                logger.warning(
                    "Notification already present; insert conflict ignored",
                    extra={"event_id": notification.event_id, "type": notification.type.value},
                )
                return False
            raise

        response_rows(response, action="insert notification")
        return True


__all__ = ["NotificationRepository"]
