#!/usr/bin/env python3
"""
Background job runner.

Runs one of the periodic jobs either once (for an external cron) or in a loop
on its configured interval.

Usage:
    python scripts/run_jobs.py status --once
    python scripts/run_jobs.py notifications
    python scripts/run_jobs.py status --interval 10
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Callable

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import Settings
from domain.time import NonDecreasingClock
from repositories.client import get_supabase
from repositories.event_repository import EventRepository
from repositories.notification_repository import NotificationRepository
from repositories.ticket_repository import TicketLedger
from services.notification_fanout_service import NotificationFanoutService
from services.status_reconciliation_service import StatusReconciliationService

logger = logging.getLogger("scripts.run_jobs")


def build_job(name: str, settings: Settings) -> tuple[Callable[[], object], float]:
    """Return (run-once callable, default interval seconds) for job `name`."""

    client = get_supabase(settings)
    events = EventRepository(client)
    clock = NonDecreasingClock()

    if name == "status":
        service = StatusReconciliationService(events, clock=clock)
        return service.run, settings.status_reconcile_interval_seconds

    if name == "notifications":
        fanout = NotificationFanoutService(
            events,
            TicketLedger(client),
            NotificationRepository(client),
            clock=clock,
            lead_minutes=settings.notification_lead_minutes,
            window_minutes=settings.notification_window_minutes,
        )
        return fanout.run, settings.notification_fanout_interval_seconds

    raise ValueError(f"Unknown job: {name}")


def run_loop(run_once: Callable[[], object], interval: float, *, once: bool) -> int:
    """
    Run `run_once` repeatedly, `interval` seconds apart (start to start).

    A failed run is logged and the loop keeps going; with `once` the failure
    is reported through the exit code instead.
    """

    while True:
        started = time.monotonic()
        try:
            result = run_once()
            logger.info("Job run complete: %s", result)
        except Exception:
            logger.exception("Job run failed")
            if once:
                return 1

        if once:
            return 0

        elapsed = time.monotonic() - started
        time.sleep(max(0.0, interval - elapsed))


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Run ticketing background jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Reconcile event statuses every 30 seconds (default interval)
  python run_jobs.py status

  # Send "starting soon" notifications once (e.g. from cron every minute)
  python run_jobs.py notifications --once
        """
    )

    parser.add_argument(
        "job",
        choices=["status", "notifications"],
        help="Which job to run"
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass and exit"
    )

    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between runs (overrides the configured interval)"
    )

    args = parser.parse_args()

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.interval is not None and args.interval <= 0:
        parser.error("--interval must be positive")

    try:
        run_once, default_interval = build_job(args.job, settings)
        return run_loop(run_once, args.interval or default_interval, once=args.once)

    except KeyboardInterrupt:
        print("\n\nJob runner interrupted by user")
        return 130

    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
