"""Payment gateway boundary.

Domain code depends on the ``PaymentGateway`` protocol only. Gateway
calls are always made outside database transactions; every failure is
reported as ``ExternalGatewayError`` so callers can retry later.
"""

from __future__ import annotations

from typing import Protocol


class PaymentGateway(Protocol):
    name: str

    def create_order(self, amount_cents: int, currency: str, receipt: str) -> str:
        """Create a payment order and return its gateway id."""
        ...

    def verify_payment(self, order_id: str, payment_id: str, signature: str | None) -> bool:
        """True if the gateway confirms ``payment_id`` settled ``order_id``."""
        ...

    def refund(self, payment_id: str, amount_cents: int, *, idempotency_key: str | None = None) -> str:
        """Refund part or all of a captured payment; returns the refund id."""
        ...


_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Process-wide gateway, built lazily from STRIPE_SECRET_KEY."""
    global _gateway
    if _gateway is None:
        from staybook.payments.stripe_gateway import StripeGateway

        _gateway = StripeGateway()
    return _gateway


def set_gateway(gateway: PaymentGateway | None) -> None:
    """Replace the process-wide gateway (tests, alternative providers)."""
    global _gateway
    _gateway = gateway
