"""
Event status reconciliation.

Recomputes the lifecycle status of every not-yet-ended event and persists the
ones that changed. Runs on a fixed interval (see scripts/run_jobs.py) or
lazily for a single event when it is read.

Precondition: the clock must not go backward between runs. Build the service
with a NonDecreasingClock (the default) rather than a raw wall clock.

Failure semantics:
- Failing to list events is fatal for the run and propagates.
- Failing to persist one event's transition is logged and skipped; the rest of
  the batch continues.
- Event rows that fail domain validation are logged and skipped by the
  repository and never reach the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from domain.event import Event, EventStatus, needs_reconciliation
from domain.time import Clock, NonDecreasingClock
from repositories.event_repository import EventRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StatusChange:
    event_id: str
    previous: EventStatus
    current: EventStatus


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """
    events_checked: events examined in this run
    changes: transitions persisted
    failed_event_ids: events whose transition could not be written
    """

    events_checked: int
    changes: List[StatusChange] = field(default_factory=list)
    failed_event_ids: List[str] = field(default_factory=list)

    @property
    def events_updated(self) -> int:
        return len(self.changes)


class StatusReconciliationService:
    def __init__(self, events: EventRepository, clock: Optional[Clock] = None) -> None:
        self._events = events
        self._clock = clock or NonDecreasingClock()

    def run(self) -> ReconciliationResult:
        """Reconcile every event whose stored status is not ENDED."""

        now = self._clock()
        candidates = self._events.list_unended_events()

        changes: List[StatusChange] = []
        failed: List[str] = []

        for event in candidates:
            target = needs_reconciliation(event, now)
            if target is None:
                continue

            try:
                written = self._events.update_status(event.event_id, event.stored_status, target)
            except Exception:
                logger.exception(
                    "Failed to persist event status",
                    extra={"event_id": event.event_id, "new_status": target.value},
                )
                failed.append(event.event_id)
                continue

            if written:
                changes.append(StatusChange(event.event_id, event.stored_status, target))
                logger.info(
                    "Event status updated",
                    extra={
                        "event_id": event.event_id,
                        "previous": event.stored_status.value,
                        "current": target.value,
                    },
                )

        result = ReconciliationResult(
            events_checked=len(candidates), changes=changes, failed_event_ids=failed
        )
        logger.info(
            "Status reconciliation finished",
            extra={
                "events_checked": result.events_checked,
                "events_updated": result.events_updated,
                "failures": len(failed),
            },
        )
        return result

    def reconcile_event(self, event_id: str) -> Optional[Event]:
        """
        Reconcile a single event on read.

        Returns:
            The event with its up-to-date status, or None if it does not exist.
            If the write fails or loses a race, the computed status is still
            returned; the next scheduled run persists it.
        """

        event = self._events.get_event(event_id)
        if event is None:
            return None

        target = needs_reconciliation(event, self._clock())
        if target is None:
            return event

        try:
            self._events.update_status(event.event_id, event.stored_status, target)
        except Exception:
            logger.exception(
                "Failed to persist event status on read",
                extra={"event_id": event.event_id, "new_status": target.value},
            )
        return event.with_status(target)


__all__ = ["ReconciliationResult", "StatusChange", "StatusReconciliationService"]
