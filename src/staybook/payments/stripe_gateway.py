"""Stripe implementation of PaymentGateway.

Orders are PaymentIntents; the payment id is the PaymentIntent's charge.
Only ids are logged, never Stripe payloads.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import stripe

from staybook.domain.errors import ExternalGatewayError
from staybook.observability.correlation import get_correlation_id

logger = logging.getLogger(__name__)


class StripeGateway:
    """PaymentGateway backed by the Stripe SDK.

    Usage:
        gateway = StripeGateway()  # reads STRIPE_SECRET_KEY
        order_id = gateway.create_order(200000, "inr", receipt="booking:abc")
    """

    name = "stripe"

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = api_key or os.environ.get("STRIPE_SECRET_KEY")

    def _client(self) -> stripe.StripeClient:
        """
        Raises:
            RuntimeError: If no API key is provided or found in environment.
        """
        if not self._api_key:
            raise RuntimeError(
                "Stripe API key not provided. "
                "Set STRIPE_SECRET_KEY or pass api_key parameter."
            )
        return stripe.StripeClient(self._api_key)

    def _fail(self, operation: str, exc: stripe.StripeError) -> ExternalGatewayError:
        logger.error(
            "stripe call failed",
            extra={
                "extra_fields": {
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                }
            },
        )
        return ExternalGatewayError(
            f"Payment gateway error during {operation}",
            details={"operation": operation},
        )

    def create_order(self, amount_cents: int, currency: str, receipt: str) -> str:
        """Create a PaymentIntent; ``receipt`` doubles as idempotency key."""
        params: dict[str, Any] = {
            "amount": amount_cents,
            "currency": currency.lower(),
            "metadata": {"receipt": receipt},
            "automatic_payment_methods": {"enabled": True},
        }
        try:
            intent = self._client().v1.payment_intents.create(
                params=params,
                options={"idempotency_key": f"{receipt}:order"},
            )
        except stripe.StripeError as exc:
            raise self._fail("create_order", exc) from exc

        logger.info(
            "stripe payment intent created",
            extra={"extra_fields": {"order_id": intent.id, "receipt": receipt}},
        )
        return intent.id

    def verify_payment(self, order_id: str, payment_id: str, signature: str | None) -> bool:
        """Check with Stripe that the intent succeeded with this charge.

        Stripe confirms server-side, so ``signature`` is not used.
        """
        try:
            intent = self._client().v1.payment_intents.retrieve(order_id)
        except stripe.StripeError as exc:
            raise self._fail("verify_payment", exc) from exc

        latest_charge = getattr(intent, "latest_charge", None)
        if latest_charge is not None and not isinstance(latest_charge, str):
            latest_charge = latest_charge.id
        return intent.status == "succeeded" and payment_id in (latest_charge, intent.id)

    def refund(self, payment_id: str, amount_cents: int, *, idempotency_key: str | None = None) -> str:
        params: dict[str, Any] = {"amount": amount_cents}
        if payment_id.startswith("pi_"):
            params["payment_intent"] = payment_id
        else:
            params["charge"] = payment_id

        options = {"idempotency_key": idempotency_key} if idempotency_key else {}
        try:
            refund = self._client().v1.refunds.create(params=params, options=options)
        except stripe.StripeError as exc:
            raise self._fail("refund", exc) from exc

        logger.info(
            "stripe refund created",
            extra={"extra_fields": {"refund_id": refund.id, "amount_cents": amount_cents}},
        )
        return refund.id
