"""
Domain: Events and their temporal lifecycle.

Lifecycle rules implemented here:
- An event is SCHEDULED before its start time.
- An event is LIVE from its start time through start_time + duration, both
  ends inclusive.
- An event is ENDED strictly after start_time + duration.
- The stored status only ever moves SCHEDULED -> LIVE -> ENDED for a fixed
  start_time/duration.

This module is pure: no I/O, no clock access. "now" is always passed in.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from .time import require_utc_timestamp


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    ENDED = "ended"

    @property
    def rank(self) -> int:
        """Position in the lifecycle; later states have a higher rank."""

        return _STATUS_ORDER.index(self)


_STATUS_ORDER = (EventStatus.SCHEDULED, EventStatus.LIVE, EventStatus.ENDED)


@dataclass(frozen=True, slots=True)
class Event:
    """
    Immutable snapshot of an event as stored.

    price is informational here (it flows into checkout and tickets); it is
    never recomputed by this core.
    """

    event_id: str
    start_time: datetime
    duration_minutes: int
    price: Decimal
    stored_status: EventStatus
    title: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.event_id:
            raise ValueError("event_id is required")
        require_utc_timestamp("start_time", self.start_time)
        if self.duration_minutes <= 0:
            raise ValueError("duration_minutes must be a positive integer")
        if self.price < 0:
            raise ValueError("price must be non-negative")

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)

    @property
    def display_title(self) -> str:
        return self.title or f"Event {self.event_id}"

    def with_status(self, status: EventStatus) -> "Event":
        return Event(
            event_id=self.event_id,
            start_time=self.start_time,
            duration_minutes=self.duration_minutes,
            price=self.price,
            stored_status=status,
            title=self.title,
        )


def resolve_status(event: Event, now: datetime) -> EventStatus:
    """
    Compute the lifecycle status of an event at instant `now`.

    Both boundaries are inclusive on the LIVE side:
        resolve_status(e, e.start_time) == LIVE
        resolve_status(e, e.end_time) == LIVE
        resolve_status(e, e.end_time + 1ms) == ENDED
    """

    require_utc_timestamp("now", now)

    if now < event.start_time:
        return EventStatus.SCHEDULED
    if now <= event.end_time:
        return EventStatus.LIVE
    return EventStatus.ENDED


def needs_reconciliation(event: Event, now: datetime) -> Optional[EventStatus]:
    """
    Return the status that should be written for `event`, or None if the
    stored status is already correct.

    A computed status that ranks below the stored one is never returned: the
    stored status only moves forward.
    """

    computed = resolve_status(event, now)
    if computed.rank <= event.stored_status.rank:
        return None
    return computed


__all__ = [
    "Event",
    "EventStatus",
    "needs_reconciliation",
    "resolve_status",
]
