"""
Service wiring for the API.

Each dependency builds one collaborator from the ones below it, so tests can
replace any layer through `app.dependency_overrides`.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, HTTPException
from supabase import Client  # type: ignore[import-not-found]

from config.settings import Settings
from domain.time import NonDecreasingClock
from repositories.checkout_gateway import CheckoutGateway, HttpCheckoutGateway
from repositories.client import get_supabase
from repositories.event_repository import EventRepository
from repositories.notification_repository import NotificationRepository
from repositories.ticket_repository import TicketLedger
from services.checkout_service import CheckoutOrchestrator
from services.notification_fanout_service import NotificationFanoutService
from services.status_reconciliation_service import StatusReconciliationService
from services.ticket_guard_service import TicketIssuanceGuard
from services.ticket_issuance_service import TicketIssuanceService

# Shared by every job invocation in this process so readings never go backward.
_job_clock = NonDecreasingClock()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def get_supabase_client(settings: Settings = Depends(get_settings)) -> Client:
    return get_supabase(settings)


def get_event_repository(client: Client = Depends(get_supabase_client)) -> EventRepository:
    return EventRepository(client)


def get_ticket_ledger(client: Client = Depends(get_supabase_client)) -> TicketLedger:
    return TicketLedger(client)


def get_notification_repository(
    client: Client = Depends(get_supabase_client),
) -> NotificationRepository:
    return NotificationRepository(client)


def get_guard(ledger: TicketLedger = Depends(get_ticket_ledger)) -> TicketIssuanceGuard:
    return TicketIssuanceGuard(ledger)


def get_checkout_gateway(settings: Settings = Depends(get_settings)) -> CheckoutGateway:
    if not settings.checkout_function_url:
        raise HTTPException(
            status_code=503,
            detail="Payment service is not configured (CHECKOUT_FUNCTION_URL or SUPABASE_URL missing)",
        )
    return HttpCheckoutGateway(
        endpoint_url=settings.checkout_function_url,
        api_key=settings.supabase_key,
        timeout_seconds=settings.checkout_timeout_seconds,
    )


def get_orchestrator(
    guard: TicketIssuanceGuard = Depends(get_guard),
    gateway: CheckoutGateway = Depends(get_checkout_gateway),
    events: EventRepository = Depends(get_event_repository),
    settings: Settings = Depends(get_settings),
) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(
        guard=guard,
        gateway=gateway,
        events=events,
        publishable_key=settings.stripe_publishable_key,
    )


def get_status_service(
    events: EventRepository = Depends(get_event_repository),
) -> StatusReconciliationService:
    return StatusReconciliationService(events, clock=_job_clock)


def get_fanout_service(
    events: EventRepository = Depends(get_event_repository),
    tickets: TicketLedger = Depends(get_ticket_ledger),
    notifications: NotificationRepository = Depends(get_notification_repository),
    settings: Settings = Depends(get_settings),
) -> NotificationFanoutService:
    return NotificationFanoutService(
        events,
        tickets,
        notifications,
        clock=_job_clock,
        lead_minutes=settings.notification_lead_minutes,
        window_minutes=settings.notification_window_minutes,
    )


def get_issuance_service(
    ledger: TicketLedger = Depends(get_ticket_ledger),
    events: EventRepository = Depends(get_event_repository),
) -> TicketIssuanceService:
    return TicketIssuanceService(ledger, events)
