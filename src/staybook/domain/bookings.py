"""Booking creation.

``create_booking`` runs in three phases:

1. Validation, read-only: hotel and room resolve, the room belongs to the
   hotel, the payment mode is enabled, the client price matches the
   server price (coupon included) and the room is free. A failure here
   leaves nothing behind.
2. One unit of work: lock the room row, re-check availability, insert the
   booking, claim the coupon slot and record its usage, insert the payment
   rows, and take the wallet share from the guest's wallet. It commits or
   rolls back as a whole, so a wallet short of funds leaves no booking.
3. After commit: notifications (failures logged only) and, for online
   bookings, the gateway order. A gateway failure surfaces as
   ExternalGatewayError but the committed pending booking stays; the order
   can be re-requested with ``create_payment_order``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from psycopg2.errors import ExclusionViolation

from staybook.infra.db import txn, unit_of_work
from staybook.infra.hotel_settings import get_hotel_settings
from staybook.infra.repositories.bookings_repository import get_booking as _get_booking_row
from staybook.infra.repositories.bookings_repository import insert_booking
from staybook.infra.repositories.payments_repository import insert_payment, list_booking_payments
from staybook.infra.repositories.rooms_repository import get_room
from staybook.notifications.dispatcher import NotificationDispatcher, notify_after_commit
from staybook.observability.redaction import booking_log_context
from staybook.payments.gateway import PaymentGateway

from . import wallet
from .access import ensure_booking_access
from .availability import assert_available
from .coupons import claim_coupon
from .errors import ExternalGatewayError, NotFoundError, RoomUnavailableError, ValidationError
from .identity import Actor
from .payment_mode import (
    OfflinePayment,
    OnlinePayment,
    PaymentMode,
    assert_never,
    build_payment_mode,
    initial_statuses,
    payment_rows,
)
from .payments import PaymentOrder, create_payment_order
from .pricing import PriceBreakdown, price_stay

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingRequest:
    user_id: str
    hotel_id: str
    room_id: str
    check_in: datetime
    check_out: datetime
    guest_count: int
    client_quoted_cents: int
    payment_mode: str = "offline"
    booking_type: str = "daily"
    coupon_code: str | None = None
    advance_cents: int | None = None
    wallet_amount_cents: int = 0
    guest_name: str | None = None
    guest_email: str | None = None
    guest_phone: str | None = None
    special_requests: str | None = None


@dataclass
class BookingResult:
    booking: dict[str, Any]
    payments: list[dict[str, Any]]
    price: PriceBreakdown
    payment_order: PaymentOrder | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def booking_id(self) -> str:
        return self.booking["id"]


def _split_amounts(mode: PaymentMode) -> tuple[int | None, int | None]:
    if isinstance(mode, OfflinePayment):
        return mode.advance_cents, mode.remaining_cents
    if isinstance(mode, OnlinePayment):
        return None, None
    assert_never(mode)


def _guest_template(mode: PaymentMode) -> str:
    if isinstance(mode, OfflinePayment):
        return "booking_confirmed_offline"
    if isinstance(mode, OnlinePayment):
        return "booking_pending_payment"
    assert_never(mode)


def create_booking(
    request: BookingRequest,
    *,
    gateway: PaymentGateway | None = None,
    notifier: NotificationDispatcher | None = None,
) -> BookingResult:
    """Create a booking with its coupon usage and payment rows atomically.

    Args:
        request: What the guest asked for, including the price they saw.
        gateway: Used for online bookings to create the payment order.
            Without one, the order is left for ``create_payment_order``.
        notifier: Receives guest and hotel notifications after commit.

    Returns:
        BookingResult with the committed booking and payment rows.

    Raises:
        ValidationError: Bad input, payment mode disabled, price mismatch,
            wallet amount outside [0, total].
        NotFoundError: Unknown hotel or room.
        ConflictError: Room taken or coupon exhausted/used.
        InsufficientFundsError: Wallet balance below the wallet amount.
        CouponError: Coupon rejected.
        ExternalGatewayError: Booking committed but the order could not be
            created.
    """
    # Phase 1: read-only validation
    with txn() as cur:
        hotel = get_hotel_settings(cur, request.hotel_id)
        if hotel is None:
            raise NotFoundError(f"Hotel {request.hotel_id} not found", details={"hotel_id": request.hotel_id})
        room = get_room(cur, request.room_id)
        if room is None:
            raise NotFoundError(f"Room {request.room_id} not found", details={"room_id": request.room_id})
        if room["hotel_id"] != hotel.hotel_id:
            raise ValidationError(
                "Room does not belong to this hotel",
                details={"room_id": request.room_id, "hotel_id": request.hotel_id},
            )
        if not hotel.accepts(request.payment_mode):
            raise ValidationError(
                f"{request.payment_mode.capitalize()} payment is not enabled for this hotel",
                details={"payment_mode": request.payment_mode},
            )

        price = price_stay(
            cur,
            request.room_id,
            request.check_in,
            request.check_out,
            client_quoted_cents=request.client_quoted_cents,
            booking_type=request.booking_type,
            coupon_code=request.coupon_code,
            user_id=request.user_id,
        )
        wallet_cents = request.wallet_amount_cents or 0
        if wallet_cents < 0 or wallet_cents > price.total_cents:
            raise ValidationError(
                "Wallet amount must be between 0 and the total amount",
                details={"wallet_amount_cents": wallet_cents, "total_cents": price.total_cents},
            )
        payable_cents = price.total_cents - wallet_cents
        mode = build_payment_mode(
            request.payment_mode, total_cents=payable_cents, advance_cents=request.advance_cents
        )
        assert_available(
            cur, request.room_id, request.check_in, request.check_out, request.guest_count
        )

    status, payment_status = initial_statuses(mode)
    paid_by_wallet = wallet_cents > 0 and payable_cents == 0
    if paid_by_wallet:
        status, payment_status = "confirmed", "completed"
    advance, remaining = _split_amounts(mode)
    payment_due_at = request.check_in - timedelta(days=1)

    # Phase 2: one unit of work
    try:
        with unit_of_work() as uow:
            assert_available(
                uow.cur,
                request.room_id,
                request.check_in,
                request.check_out,
                request.guest_count,
                lock=True,
            )
            booking_id = insert_booking(
                uow.cur,
                user_id=request.user_id,
                hotel_id=request.hotel_id,
                room_id=request.room_id,
                check_in=request.check_in,
                check_out=request.check_out,
                booking_type=request.booking_type,
                guest_count=request.guest_count,
                total_amount_cents=price.total_cents,
                discount_cents=price.discount_cents,
                payment_mode=mode.name,
                status=status,
                payment_status=payment_status,
                coupon_id=price.coupon.coupon_id if price.coupon else None,
                advance_amount_cents=advance,
                remaining_amount_cents=remaining,
                wallet_amount_cents=wallet_cents,
                guest_name=request.guest_name,
                guest_email=request.guest_email,
                guest_phone=request.guest_phone,
                special_requests=request.special_requests,
                payment_due_at=payment_due_at,
            )

            if price.coupon is not None:
                claim_coupon(uow.cur, quote=price.coupon, user_id=request.user_id, booking_id=booking_id)

            if wallet_cents > 0:
                wallet_payment_id = insert_payment(
                    uow.cur,
                    booking_id=booking_id,
                    amount_cents=wallet_cents,
                    currency=price.currency,
                    payment_mode=mode.name,
                    payment_type="wallet",
                    status="completed",
                    provider="wallet",
                )
                wallet.debit(
                    request.user_id,
                    wallet_cents,
                    source="booking_payment",
                    description=f"Payment for booking {booking_id}",
                    reference_id=booking_id,
                    reference_type="booking",
                    metadata={"payment_id": wallet_payment_id},
                    cur=uow.cur,
                )

            if not paid_by_wallet:
                for payment_type, amount in payment_rows(mode, payable_cents):
                    insert_payment(
                        uow.cur,
                        booking_id=booking_id,
                        amount_cents=amount,
                        currency=price.currency,
                        payment_mode=mode.name,
                        payment_type=payment_type,
                    )

            booking = _get_booking_row(uow.cur, booking_id)
            payments = list_booking_payments(uow.cur, booking_id)

            if notifier is not None:
                variables = {
                    "booking_id": booking_id,
                    "check_in": request.check_in.isoformat(),
                    "check_out": request.check_out.isoformat(),
                    "total_amount_cents": price.total_cents,
                }
                guest_template = "payment_success" if paid_by_wallet else _guest_template(mode)
                notify_after_commit(uow, notifier, guest_template, request.user_id, variables)
                notify_after_commit(uow, notifier, "new_booking_hotel", hotel.owner_id, variables)
    except ExclusionViolation as exc:
        logger.info(
            "booking conflict on insert",
            extra={"extra_fields": {"room_id": request.room_id}},
        )
        raise RoomUnavailableError(
            request.room_id, "Room is already booked for the selected dates"
        ) from exc

    logger.info("booking created", extra={"extra_fields": booking_log_context(booking)})
    result = BookingResult(booking=booking, payments=payments, price=price)

    # Phase 3: gateway order, outside any transaction
    if isinstance(mode, OnlinePayment):
        if gateway is not None and payable_cents > 0:
            try:
                result.payment_order = create_payment_order(booking_id, gateway=gateway)
            except ExternalGatewayError as exc:
                exc.details["booking_id"] = booking_id
                raise
    elif isinstance(mode, OfflinePayment):
        pass
    else:
        assert_never(mode)

    return result


def get_booking(booking_id: str, actor: Actor) -> dict[str, Any]:
    """Booking with its payments, for its guest, hotel owner or an admin.

    Raises:
        NotFoundError: Unknown booking.
        AuthorizationError: Actor may not see it.
    """
    with txn() as cur:
        booking = _get_booking_row(cur, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found", details={"booking_id": booking_id})
        ensure_booking_access(cur, actor, booking)
        booking["payments"] = list_booking_payments(cur, booking_id)
    return booking
