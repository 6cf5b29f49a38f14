"""Stripe webhook signature validation and event extraction.

Never logs the payload or the signature header.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import stripe

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
HANDLED_EVENT_TYPES = frozenset({PAYMENT_SUCCEEDED, PAYMENT_FAILED})


class InvalidSignatureError(Exception):
    """Webhook signature validation failed."""


class InvalidPayloadError(Exception):
    """Payload is not a well-formed Stripe event."""


@dataclass
class GatewayEvent:
    """The parts of a gateway event reconciliation needs."""

    event_id: str
    event_type: str
    order_id: str | None
    payment_id: str | None

    @property
    def succeeded(self) -> bool:
        return self.event_type == PAYMENT_SUCCEEDED


def verify_and_extract(payload_bytes: bytes, signature_header: str, webhook_secret: str) -> GatewayEvent:
    """Validate the Stripe-Signature header and extract the event.

    Raises:
        InvalidSignatureError: Signature does not match.
        InvalidPayloadError: Body is not a valid event.
    """
    try:
        event = stripe.Webhook.construct_event(payload_bytes, signature_header, webhook_secret)
    except stripe.SignatureVerificationError as e:
        logger.warning("stripe webhook signature verification failed")
        raise InvalidSignatureError("Invalid signature") from e
    except ValueError as e:
        logger.warning("stripe webhook payload parsing failed")
        raise InvalidPayloadError("Invalid payload") from e

    event_id = event.get("id")
    event_type = event.get("type")
    if not event_id or not event_type:
        raise InvalidPayloadError("Missing event id or type")

    order_id, payment_id = _extract_ids(event)
    return GatewayEvent(event_id=event_id, event_type=event_type, order_id=order_id, payment_id=payment_id)


def _extract_ids(event: Any) -> tuple[str | None, str | None]:
    """(PaymentIntent id, charge id) of a payment_intent.* event."""
    obj = event.get("data", {}).get("object", {}) or {}
    order_id = obj.get("id")
    charge = obj.get("latest_charge")
    if isinstance(charge, dict):
        charge = charge.get("id")
    return order_id, charge or order_id
