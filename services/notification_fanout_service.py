"""
"Starting soon" notification fan-out.

Invoked once a minute by an external scheduler. Each run:
1. finds SCHEDULED events with start_time in [now + lead, now + lead + width)
2. collects the distinct authenticated holders of ACTIVE tickets for each
3. writes one EVENT_STARTING notification per (event, holder) that has none

Guest tickets (email only) have no in-app inbox and are not notified here.

Idempotency is check-then-insert backed by the store's unique constraint on
(event_id, user_id, type); running twice in the same window sends nothing the
second time. Without that constraint the guarantee is best-effort only.

The window is exactly one run period wide: if the scheduler skips a cycle,
events in the missed window get no notification and there is no catch-up.

Failure semantics: a failure on one event or one holder is logged and the run
continues. Invalid event rows are skipped, and holders are read from the
user_id column alone so a malformed ticket row cannot hide the others.
Only a failure to list candidate events propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from domain.event import Event
from domain.notification import NotificationType, event_starting_notification
from domain.time import Clock, NonDecreasingClock
from repositories.event_repository import EventRepository
from repositories.notification_repository import NotificationRepository
from repositories.ticket_repository import TicketLedger

logger = logging.getLogger(__name__)

DEFAULT_LEAD_MINUTES = 15
DEFAULT_WINDOW_MINUTES = 1


@dataclass(frozen=True, slots=True)
class FanoutResult:
    events_processed: int
    notifications_sent: int
    failures: int = 0


class NotificationFanoutService:
    def __init__(
        self,
        events: EventRepository,
        tickets: TicketLedger,
        notifications: NotificationRepository,
        clock: Optional[Clock] = None,
        lead_minutes: int = DEFAULT_LEAD_MINUTES,
        window_minutes: int = DEFAULT_WINDOW_MINUTES,
    ) -> None:
        if lead_minutes <= 0 or window_minutes <= 0:
            raise ValueError("lead_minutes and window_minutes must be positive")
        self._events = events
        self._tickets = tickets
        self._notifications = notifications
        self._clock = clock or NonDecreasingClock()
        self._lead = timedelta(minutes=lead_minutes)
        self._width = timedelta(minutes=window_minutes)
        self._lead_minutes = lead_minutes

    def run(self) -> FanoutResult:
        """
        Execute one fan-out pass.

        Returns:
            FanoutResult with counts of events processed and notifications written

        Raises:
            RuntimeError / APIError: Only if candidate events cannot be listed.
        """

        now = self._clock()
        window_start = now + self._lead
        window_end = window_start + self._width

        events = self._events.list_scheduled_starting_between(window_start, window_end)
        if not events:
            logger.info("No events starting soon", extra={"window_start": window_start.isoformat()})
            return FanoutResult(events_processed=0, notifications_sent=0)

        sent = 0
        failures = 0
        for event in events:
            try:
                holders = self._tickets.active_holder_ids(event.event_id)
            except Exception:
                logger.exception("Failed to load ticket holders", extra={"event_id": event.event_id})
                failures += 1
                continue

            for user_id in holders:
                try:
                    if self._notify(event, user_id):
                        sent += 1
                except Exception:
                    logger.exception(
                        "Failed to write notification",
                        extra={"event_id": event.event_id},
                    )
                    failures += 1

        result = FanoutResult(events_processed=len(events), notifications_sent=sent, failures=failures)
        logger.info(
            "Notification fan-out finished",
            extra={
                "events_processed": result.events_processed,
                "notifications_sent": result.notifications_sent,
                "failures": result.failures,
            },
        )
        return result

    def _notify(self, event: Event, user_id: str) -> bool:
        if self._notifications.exists(event.event_id, user_id, NotificationType.EVENT_STARTING):
            return False

        notification = event_starting_notification(
            event_id=event.event_id,
            user_id=user_id,
            event_title=event.display_title,
            lead_minutes=self._lead_minutes,
        )
        return self._notifications.insert(notification)


__all__ = [
    "DEFAULT_LEAD_MINUTES",
    "DEFAULT_WINDOW_MINUTES",
    "FanoutResult",
    "NotificationFanoutService",
]
