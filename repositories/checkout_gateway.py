"""
Payment-gateway collaborator.

Creates checkout sessions by calling the checkout endpoint over HTTP.

Contract:
    request:  {"eventId": str, "identity": {"userId"?: str, "email"?: str}}
              cart checkouts send {"eventIds": [...], "isCart": true} instead
    response: {"url": str} | {"sessionId": str} | {"error": str}

Every failure is raised as CheckoutGatewayError. Its `message` is the
transport-level description and its `context` keeps whatever the gateway
returned (`body`, `status`), so the caller can pick the most specific text to
show the user.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import httpx

from domain.ticket import PurchaserIdentity

logger = logging.getLogger(__name__)

FUNCTION_NOT_FOUND = "Function not found"
SEND_FAILED = "Failed to send a request to the payment service"
NON_2XX = "Payment service returned a non-2xx status code"


class CheckoutGatewayError(Exception):
    """Gateway call failed; see `message` and `context`."""

    def __init__(self, message: str, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})


@dataclass(frozen=True, slots=True)
class CheckoutSessionRequest:
    event_ids: List[str]
    identity: Optional[PurchaserIdentity] = None
    is_cart: bool = False
    phone: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.is_cart:
            payload["eventIds"] = list(self.event_ids)
            payload["isCart"] = True
        else:
            payload["eventId"] = self.event_ids[0]

        if self.identity is not None:
            identity: Dict[str, str] = {}
            if self.identity.user_id:
                identity["userId"] = self.identity.user_id
            if self.identity.email:
                identity["email"] = self.identity.email
            payload["identity"] = identity

        if self.phone:
            payload["phone"] = self.phone
        return payload


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    """Redirect target: a direct URL, an opaque session id, or both."""

    url: Optional[str] = None
    session_id: Optional[str] = None


class CheckoutGateway(ABC):
    @abstractmethod
    def create_session(self, request: CheckoutSessionRequest) -> CheckoutSession: ...


@dataclass
class HttpCheckoutGateway(CheckoutGateway):
    """
    httpx-backed gateway client.

    Every call is bounded by `timeout_seconds`; a timeout is reported like any
    other send failure. There is no retry.
    """

    endpoint_url: str
    api_key: Optional[str] = None
    timeout_seconds: float = 10.0
    transport: Optional[httpx.BaseTransport] = field(default=None, repr=False)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        return headers

    def create_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        payload = request.to_payload()

        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = client.post(self.endpoint_url, json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            logger.error("Checkout gateway timed out", extra={"timeout_seconds": self.timeout_seconds})
            raise CheckoutGatewayError(f"{SEND_FAILED}: timed out") from e
        except httpx.TransportError as e:
            logger.error("Checkout gateway unreachable", extra={"error": str(e)})
            raise CheckoutGatewayError(f"{SEND_FAILED}: {e}") from e

        body = _decode_body(response)

        if response.status_code == 404:
            raise CheckoutGatewayError(
                FUNCTION_NOT_FOUND, context={"status": 404, "body": body}
            )
        if response.is_error:
            raise CheckoutGatewayError(
                NON_2XX, context={"status": response.status_code, "body": body}
            )

        if not isinstance(body, Mapping):
            raise CheckoutGatewayError(
                "Payment service returned an invalid response",
                context={"status": response.status_code, "body": body},
            )
        if body.get("error"):
            raise CheckoutGatewayError(
                "Payment service reported an error",
                context={"status": response.status_code, "body": body},
            )

        url = body.get("url") or None
        session_id = body.get("sessionId") or None
        if url is None and session_id is None:
            raise CheckoutGatewayError(
                "Payment service returned neither a URL nor a session id",
                context={"status": response.status_code, "body": body},
            )

        return CheckoutSession(url=url, session_id=session_id)


def _decode_body(response: httpx.Response) -> Any:
    """JSON body if the response has one, otherwise the raw text (or None)."""

    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError):
        return response.text


__all__ = [
    "CheckoutGateway",
    "CheckoutGatewayError",
    "CheckoutSession",
    "CheckoutSessionRequest",
    "FUNCTION_NOT_FOUND",
    "HttpCheckoutGateway",
    "NON_2XX",
    "SEND_FAILED",
]
