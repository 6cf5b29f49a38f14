"""Stripe webhook endpoint.

Security rules:
- Validate Stripe-Signature on every request.
- Never log payload or signature header.
- Answer 5xx when reconciliation fails so Stripe retries; receipts are
  deduplicated in processed_events inside the same transaction.
"""

from __future__ import annotations

import os

from fastapi import APIRouter, Depends, Header, Request, Response

from staybook.api.deps import get_notifier
from staybook.domain.payments import apply_gateway_event
from staybook.notifications.dispatcher import NotificationDispatcher
from staybook.observability.correlation import get_correlation_id
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context
from staybook.payments.webhook import InvalidPayloadError, InvalidSignatureError, verify_and_extract

router = APIRouter(tags=["webhooks"])

logger = get_logger(__name__)


def _get_webhook_secret() -> str:
    secret = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
    if not secret:
        raise RuntimeError("STRIPE_WEBHOOK_SECRET not configured")
    return secret


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(..., alias="Stripe-Signature"),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> Response:
    """Receive a Stripe event and reconcile the payment it refers to.

    Returns:
        200 when applied, duplicate, ignored or for an unknown order.
        400 for a bad signature or payload.
        500 when the secret is missing or reconciliation failed.
    """
    correlation_id = get_correlation_id()
    payload_bytes = await request.body()

    try:
        secret = _get_webhook_secret()
    except RuntimeError:
        logger.error(
            "webhook secret not configured",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=500, content="server configuration error")

    try:
        event = verify_and_extract(payload_bytes, stripe_signature, secret)
    except InvalidSignatureError:
        return Response(status_code=400, content="invalid signature")
    except InvalidPayloadError:
        return Response(status_code=400, content="invalid payload")

    try:
        outcome = apply_gateway_event(event, notifier=notifier)
    except Exception:
        logger.exception(
            "stripe event reconciliation failed",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id, event_type=event.event_type
                )
            },
        )
        return Response(status_code=500, content="processing failed")

    logger.info(
        "stripe webhook handled",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id, event_type=event.event_type, outcome=outcome
            )
        },
    )
    return Response(status_code=200, content=outcome)
