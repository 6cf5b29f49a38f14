"""Shared test helpers (plain functions and fakes, not fixtures)."""

from __future__ import annotations

import base64
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

from staybook.domain.errors import ExternalGatewayError
from staybook.infra.db import UnitOfWork
from staybook.infra.hotel_settings import HotelSettings

HOTEL_ID = "11111111-1111-1111-1111-111111111111"
OWNER_ID = "22222222-2222-2222-2222-222222222222"
CITY_ID = "33333333-3333-3333-3333-333333333333"
ROOM_ID = "44444444-4444-4444-4444-444444444444"
ROOM_TYPE_ID = "55555555-5555-5555-5555-555555555555"
GUEST_ID = "66666666-6666-6666-6666-666666666666"
BOOKING_ID = "77777777-7777-7777-7777-777777777777"


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_hotel(**overrides) -> HotelSettings:
    values = {
        "hotel_id": HOTEL_ID,
        "owner_id": OWNER_ID,
        "city_id": CITY_ID,
        "currency": "INR",
        "cancellation_time_hours": 24,
        "cancellation_fee_percentage": Decimal("20"),
        "online_payment_enabled": True,
        "offline_payment_enabled": True,
    }
    values.update(overrides)
    return HotelSettings(**values)


def make_room(**overrides) -> dict:
    room = {
        "id": ROOM_ID,
        "hotel_id": HOTEL_ID,
        "room_type_id": ROOM_TYPE_ID,
        "price_per_night_cents": 100000,
        "price_per_hour_cents": 15000,
        "capacity": 2,
        "status": "available",
    }
    room.update(overrides)
    return room


def make_coupon(**overrides) -> dict:
    coupon = {
        "id": "c0000000-0000-0000-0000-000000000001",
        "code": "SAVE10",
        "discount_type": "percentage",
        "discount_value": Decimal("10"),
        "max_discount_cents": None,
        "min_order_cents": 0,
        "valid_from": utc(2020, 1, 1),
        "valid_to": utc(2099, 1, 1),
        "usage_limit": None,
        "used_count": 0,
        "applicable_booking_types": "both",
        "status": "active",
    }
    coupon.update(overrides)
    return coupon


def make_booking(**overrides) -> dict:
    booking = {
        "id": BOOKING_ID,
        "user_id": GUEST_ID,
        "hotel_id": HOTEL_ID,
        "room_id": ROOM_ID,
        "check_in": utc(2024, 6, 1, 14),
        "check_out": utc(2024, 6, 3, 11),
        "booking_type": "daily",
        "guest_count": 2,
        "total_amount_cents": 200000,
        "discount_cents": 0,
        "coupon_id": None,
        "payment_mode": "offline",
        "advance_amount_cents": 0,
        "remaining_amount_cents": 200000,
        "status": "confirmed",
        "payment_status": "pending",
    }
    booking.update(overrides)
    return booking


@contextmanager
def fake_txn(cur=None):
    """Stand-in for ``txn()`` yielding a MagicMock cursor."""
    yield cur if cur is not None else MagicMock()


def fake_unit_of_work_factory(cur=None, units: list | None = None):
    """Stand-in for ``unit_of_work()`` with the real hook semantics.

    Every opened unit is appended to ``units`` for inspection.
    """

    @contextmanager
    def _uow(*args, **kwargs):
        uow = UnitOfWork(cur if cur is not None else MagicMock())
        if units is not None:
            units.append(uow)
        try:
            yield uow
        except Exception:
            uow.discard()
            raise
        uow.run_after_commit()

    return _uow


class FakeGateway:
    """In-memory PaymentGateway."""

    name = "fake"

    def __init__(self, *, fail_create: bool = False, fail_refund: bool = False, verified: bool = True):
        self.fail_create = fail_create
        self.fail_refund = fail_refund
        self.verified = verified
        self.orders: list[tuple[int, str, str]] = []
        self.refunds: list[tuple[str, int]] = []

    def create_order(self, amount_cents: int, currency: str, receipt: str) -> str:
        if self.fail_create:
            raise ExternalGatewayError("gateway down")
        self.orders.append((amount_cents, currency, receipt))
        return f"order_{len(self.orders)}"

    def verify_payment(self, order_id: str, payment_id: str, signature: str | None) -> bool:
        return self.verified

    def refund(self, payment_id: str, amount_cents: int, *, idempotency_key: str | None = None) -> str:
        if self.fail_refund:
            raise ExternalGatewayError("gateway down")
        self.refunds.append((payment_id, amount_cents))
        return f"rf_{len(self.refunds)}"


class RecordingNotifier:
    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str, dict]] = []

    def notify(self, template_key: str, user_id: str, variables: dict) -> None:
        if self.fail:
            raise RuntimeError("push service down")
        self.sent.append((template_key, user_id, variables))

    @property
    def templates(self) -> list[str]:
        return [t for t, _, _ in self.sent]


def _generate_rsa_keypair():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key, private_key.public_key()


def _create_jwks(public_key, kid: str = "test-key-1") -> dict:
    public_numbers = public_key.public_numbers()

    def int_to_base64(n: int) -> str:
        byte_length = (n.bit_length() + 7) // 8
        return base64.urlsafe_b64encode(n.to_bytes(byte_length, "big")).rstrip(b"=").decode()

    return {
        "keys": [
            {
                "kty": "RSA",
                "use": "sig",
                "alg": "RS256",
                "kid": kid,
                "n": int_to_base64(public_numbers.n),
                "e": int_to_base64(public_numbers.e),
            }
        ]
    }


def _create_token(
    private_key,
    kid: str = "test-key-1",
    sub: str = "user-123",
    iss: str = "https://issuer.example.com",
    aud: str = "staybook-api",
    exp: int | None = None,
    azp: str | None = None,
) -> str:
    now = int(time.time())
    payload = {"sub": sub, "iss": iss, "aud": aud, "exp": exp if exp is not None else now + 3600, "iat": now}
    if azp:
        payload["azp"] = azp
    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": kid})
