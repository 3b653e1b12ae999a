"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Wire names are camelCase (the browser client's convention); Python attributes
stay snake_case.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Checkout Models
# ============================================================================

class IdentityPayload(_WireModel):
    """Purchaser identity; the user id wins when both are given."""
    user_id: Optional[str] = Field(None, alias="userId")
    email: Optional[str] = None


class CheckoutRequest(_WireModel):
    """Single-event checkout."""
    event_id: Optional[str] = Field(None, alias="eventId")
    identity: Optional[IdentityPayload] = None
    phone: Optional[str] = None

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "eventId": "3f1c9c8e-0b7a-4a53-9d7e-2d1f5b9a1c11",
                "identity": {"userId": "8d0e6b5a-3c2f-4e1d-9a7b-6c5d4e3f2a1b"},
            }
        },
    )


class CartCheckoutRequest(_WireModel):
    """Checkout of every event in the cart."""
    event_ids: List[str] = Field(..., alias="eventIds", min_length=1)
    identity: Optional[IdentityPayload] = None
    phone: Optional[str] = None


class CheckoutResponse(_WireModel):
    """Outcome of a checkout attempt."""
    state: str
    url: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId")
    publishable_key: Optional[str] = Field(None, alias="publishableKey")
    message: Optional[str] = None
    held_event_ids: List[str] = Field(default_factory=list, alias="heldEventIds")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "state": "redirect_issued",
                "url": "https://checkout.stripe.com/c/pay/cs_test_a1b2c3",
                "sessionId": "cs_test_a1b2c3",
                "heldEventIds": [],
            }
        },
    )


# ============================================================================
# Ticket / Event Models
# ============================================================================

class ActiveTicketResponse(_WireModel):
    event_id: str = Field(..., alias="eventId")
    has_active_ticket: bool = Field(..., alias="hasActiveTicket")


class EventStatusResponse(_WireModel):
    event_id: str = Field(..., alias="eventId")
    status: str
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime = Field(..., alias="endTime")


# ============================================================================
# Job Models
# ============================================================================

class FanoutResponse(_WireModel):
    events_processed: int = Field(..., alias="eventsProcessed")
    notifications_sent: int = Field(..., alias="notificationsSent")


class ReconciliationResponse(_WireModel):
    events_checked: int = Field(..., alias="eventsChecked")
    events_updated: int = Field(..., alias="eventsUpdated")
    failures: int


# ============================================================================
# Payment Webhook Models
# ============================================================================

class WebhookResponse(_WireModel):
    received: bool = True
    tickets_created: int = Field(0, alias="ticketsCreated")
    skipped_event_ids: List[str] = Field(default_factory=list, alias="skippedEventIds")
    failed_event_ids: List[str] = Field(default_factory=list, alias="failedEventIds")


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
