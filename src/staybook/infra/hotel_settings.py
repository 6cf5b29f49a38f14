"""Per-hotel booking settings.

Loads the cancellation policy and the enabled payment modes for a hotel.
Columns left NULL fall back to the engine-wide defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from psycopg2.extensions import cursor as PgCursor

from .config import get_settings


@dataclass(frozen=True)
class HotelSettings:
    """Booking-relevant configuration of one hotel."""

    hotel_id: str
    owner_id: str | None
    city_id: str | None
    currency: str
    cancellation_time_hours: int
    cancellation_fee_percentage: Decimal
    online_payment_enabled: bool = True
    offline_payment_enabled: bool = True

    def accepts(self, mode_name: str) -> bool:
        if mode_name == "online":
            return self.online_payment_enabled
        if mode_name == "offline":
            return self.offline_payment_enabled
        return False


def get_hotel_settings(cur: PgCursor, hotel_id: str) -> HotelSettings | None:
    """Load settings for a hotel, or None if the hotel does not exist."""
    cur.execute(
        """
        SELECT id, owner_id, city_id, currency,
               cancellation_time_hours, cancellation_fee_percentage,
               online_payment_enabled, offline_payment_enabled
        FROM hotels
        WHERE id = %s
        """,
        (hotel_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None

    defaults = get_settings()
    return HotelSettings(
        hotel_id=str(row[0]),
        owner_id=str(row[1]) if row[1] is not None else None,
        city_id=str(row[2]) if row[2] is not None else None,
        currency=row[3] or defaults.currency,
        cancellation_time_hours=(
            row[4] if row[4] is not None else defaults.default_cancellation_hours
        ),
        cancellation_fee_percentage=Decimal(str(row[5] if row[5] is not None else 0)),
        online_payment_enabled=True if row[6] is None else bool(row[6]),
        offline_payment_enabled=True if row[7] is None else bool(row[7]),
    )
