"""
Domain: In-app notifications produced by this core.

A notification is identified by (event_id, user_id, type). For the
EVENT_STARTING type at most one row may ever exist per event and user;
notifications are created once and never updated or deleted here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class NotificationType(str, Enum):
    EVENT_STARTING = "event_starting"


@dataclass(frozen=True, slots=True)
class Notification:
    event_id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    read: bool = False
    sent: bool = True

    def __post_init__(self) -> None:
        if not self.event_id or not self.user_id:
            raise ValueError("Notification requires event_id and user_id")

    def to_row(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "user_id": self.user_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "sent": self.sent,
        }


def event_starting_notification(
    event_id: str, user_id: str, event_title: str, lead_minutes: int
) -> Notification:
    """Build the "starting soon" notification for one ticket holder."""

    return Notification(
        event_id=event_id,
        user_id=user_id,
        type=NotificationType.EVENT_STARTING,
        title="Event Starting Soon!",
        message=f"{event_title} starts in {lead_minutes} minutes. Get ready!",
        read=False,
        sent=True,
    )


__all__ = [
    "Notification",
    "NotificationType",
    "event_starting_notification",
]
