"""Redaction helpers for safe logging. Guest contact data must pass through these."""

import re
from typing import Any

# Patterns that should never appear in logs
_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"

# Booking fields that carry guest PII and are dropped wholesale
PII_FIELDS = frozenset({"guest_name", "guest_email", "guest_phone", "special_requests"})


def redact_string(value: str) -> str:
    """Redact PII patterns from a string."""
    result = _PHONE_PATTERN.sub(_REDACTED, value)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # For dicts, only log keys (structure), never values
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {k: redact_value(v) for k, v in kwargs.items() if k not in PII_FIELDS}


# Booking columns that are safe to log as-is (ids, states, amounts)
_BOOKING_LOG_FIELDS = (
    "id",
    "hotel_id",
    "room_id",
    "booking_type",
    "payment_mode",
    "status",
    "payment_status",
    "total_amount_cents",
    "discount_cents",
    "wallet_amount_cents",
)


def booking_log_context(booking: dict[str, Any]) -> dict[str, str]:
    """Log-safe view of a booking row.

    Guest PII fields are replaced by a single ``guest_contact`` flag that
    only says whether any contact data was given.
    """
    context = {
        k: "null" if booking[k] is None else str(booking[k])
        for k in _BOOKING_LOG_FIELDS
        if k in booking
    }
    context["guest_contact"] = redact_value(any(booking.get(k) for k in PII_FIELDS))
    return context
