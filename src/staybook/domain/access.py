"""Who may act on a booking.

- admin: any booking
- hotel: bookings at hotels they own
- guest: their own bookings
"""

from __future__ import annotations

from typing import Any

from psycopg2.extensions import cursor as PgCursor

from staybook.infra.hotel_settings import get_hotel_settings

from .errors import AuthorizationError
from .identity import Actor, ActorRole


def owns_hotel(cur: PgCursor, actor: Actor, hotel_id: str) -> bool:
    hotel = get_hotel_settings(cur, hotel_id)
    return hotel is not None and hotel.owner_id == actor.id


def ensure_booking_access(
    cur: PgCursor,
    actor: Actor,
    booking: dict[str, Any],
    *,
    allow_guest: bool = True,
) -> None:
    """Raise AuthorizationError unless ``actor`` may act on ``booking``.

    Args:
        allow_guest: False for operator-only actions (settling payments).
    """
    if actor.is_admin:
        return
    if actor.role is ActorRole.GUEST and allow_guest and booking["user_id"] == actor.id:
        return
    if actor.role is ActorRole.HOTEL and owns_hotel(cur, actor, booking["hotel_id"]):
        return
    raise AuthorizationError(
        "Not allowed to act on this booking", details={"booking_id": booking["id"]}
    )
