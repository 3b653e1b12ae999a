"""
Event repository (persistence).

Reads events and persists lifecycle status changes. It does not decide what
the status should be; that is `domain.event.resolve_status`. Time and price
fields belong to the scheduling side and are never written here.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence

from supabase import Client  # type: ignore[import-not-found]

from domain.event import Event, EventStatus
from repositories.rows import parse_decimal, parse_utc_datetime, response_rows, to_iso_utc

logger = logging.getLogger(__name__)

# Supabase table name for events.
# Keep this aligned with your database schema.
_EVENTS_TABLE: str = "events"

_EVENT_COLUMNS = "id, title, start_time, duration, price, status"


def _row_to_event(row: Mapping[str, Any]) -> Event:
    """Convert a Supabase row into an Event."""

    return Event(
        event_id=str(row["id"]),
        start_time=parse_utc_datetime(row["start_time"]),
        duration_minutes=int(row["duration"]),
        price=parse_decimal(row.get("price")) or Decimal("0"),
        stored_status=EventStatus(str(row["status"])),
        title=row.get("title"),
    )


def _rows_to_events(rows: Sequence[Mapping[str, Any]]) -> List[Event]:
    """Convert rows one at a time; a row that fails validation is logged and skipped."""

    events: List[Event] = []
    for row in rows:
        try:
            events.append(_row_to_event(row))
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            logger.warning(
                "Skipping invalid event row",
                extra={"event_id": row.get("id"), "reason": str(e)},
            )
    return events


class EventRepository:
    """Supabase-backed access to the `events` table."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def get_event(self, event_id: str) -> Optional[Event]:
        """
        Retrieve a single event by id.

        Returns:
            Event or None if not found
        """

        response = (
            self._client.table(_EVENTS_TABLE)
            .select(_EVENT_COLUMNS)
            .eq("id", event_id)
            .limit(1)
            .execute()
        )
        rows = response_rows(response, action="get event")
        if not rows:
            return None
        return _row_to_event(rows[0])

    def get_events(self, event_ids: Sequence[str]) -> List[Event]:
        """Retrieve the events whose ids are in `event_ids` (missing ids are omitted)."""

        if not event_ids:
            return []

        response = (
            self._client.table(_EVENTS_TABLE)
            .select(_EVENT_COLUMNS)
            .in_("id", list(event_ids))
            .execute()
        )
        rows = response_rows(response, action="get events")
        return _rows_to_events(rows)

    def list_unended_events(self) -> List[Event]:
        """All events whose stored status is not ENDED."""

        response = (
            self._client.table(_EVENTS_TABLE)
            .select(_EVENT_COLUMNS)
            .neq("status", EventStatus.ENDED.value)
            .execute()
        )
        rows = response_rows(response, action="list unended events")
        return _rows_to_events(rows)

    def list_scheduled_starting_between(self, start: datetime, end: datetime) -> List[Event]:
        """
        SCHEDULED events with start_time in the half-open window [start, end).
        """

        response = (
            self._client.table(_EVENTS_TABLE)
            .select(_EVENT_COLUMNS)
            .eq("status", EventStatus.SCHEDULED.value)
            .gte("start_time", to_iso_utc(start, name="start"))
            .lt("start_time", to_iso_utc(end, name="end"))
            .execute()
        )
        rows = response_rows(response, action="list events starting soon")
        return _rows_to_events(rows)

    def update_status(
        self, event_id: str, expected: EventStatus, new_status: EventStatus
    ) -> bool:
        """
        Compare-and-set the stored status.

        The write only applies if the row still holds `expected`; this keeps
        a slower concurrent reconciler from overwriting a later status.

        Returns:
            True if a row was updated, False if the stored status had moved on
            (or the event no longer exists).
        """

        response = (
            self._client.table(_EVENTS_TABLE)
            .update({"status": new_status.value})
            .eq("id", event_id)
            .eq("status", expected.value)
            .execute()
        )
        rows = response_rows(response, action="update event status")
        if not rows:
            logger.warning(
                "Event status write skipped; stored status changed concurrently",
                extra={"event_id": event_id, "expected": expected.value, "new_status": new_status.value},
            )
            return False
        return True


__all__ = ["EventRepository"]
