"""Engine settings loaded from the environment.

Every value has a default so the engine runs in tests without any env
configuration; DATABASE_URL and the Stripe keys are read lazily by the
modules that need them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class EngineSettings:
    """Process-wide booking engine settings.

    Attributes:
        currency: ISO currency code for all amounts (minor units in storage).
        price_tolerance_cents: Max accepted difference between the client
            quote and the server price.
        default_cancellation_hours: Cancellation window used when a hotel
            has none configured.
        online_refund_days / offline_refund_days: Expected processing days
            recorded on refund requests per original payment mode.
    """

    currency: str = "INR"
    price_tolerance_cents: int = 1
    default_cancellation_hours: int = 24
    online_refund_days: int = 7
    offline_refund_days: int = 10


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    """Load settings once per process."""
    return EngineSettings(
        currency=os.environ.get("STAYBOOK_CURRENCY", "INR").upper(),
        price_tolerance_cents=_int_env("STAYBOOK_PRICE_TOLERANCE_CENTS", 1),
        default_cancellation_hours=_int_env("STAYBOOK_DEFAULT_CANCELLATION_HOURS", 24),
        online_refund_days=_int_env("STAYBOOK_ONLINE_REFUND_DAYS", 7),
        offline_refund_days=_int_env("STAYBOOK_OFFLINE_REFUND_DAYS", 10),
    )
