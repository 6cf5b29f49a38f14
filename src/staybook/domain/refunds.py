"""Cancellation and refund settlement.

Cancelling a booking creates a refund request and flips the booking to
``cancelled`` in the same transaction. The request is then either
processed (money goes back) or rejected (the booking is reinstated).

Fee policy for a guest cancellation::

    hours_until = (check_in - now) / 1h
    fee    = original * fee_pct / 100   if hours_until < cancellation_time_hours
           = 0                          otherwise
    refund = original - fee

A ``hotel_cancellation`` always refunds in full. ``no_show`` and
``admin_refund`` follow the same fee policy as a guest cancellation.

When the refund is processed, the part of the booking paid from the
guest's wallet goes back to the wallet first; only the rest is returned
through the gateway.

State machine: pending -> processed | rejected. Both end states are final.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from psycopg2.errors import ExclusionViolation, UniqueViolation
from psycopg2.extensions import cursor as PgCursor

from staybook.infra.config import get_settings
from staybook.infra.db import txn, unit_of_work
from staybook.infra.hotel_settings import get_hotel_settings
from staybook.infra.repositories.bookings_repository import (
    get_booking,
    mark_booking_cancelled,
    revert_booking_cancellation,
    update_booking_status,
)
from staybook.infra.repositories.payments_repository import (
    find_completed_online_payment,
    sum_completed_payments,
    sum_wallet_payments,
)
from staybook.infra.repositories.refunds_repository import (
    get_refund_for_booking,
    get_refund_request as _get_refund_row,
    insert_refund_request,
    mark_refund_processed,
    mark_refund_rejected,
)
from staybook.infra.time import hours_between, utc_now
from staybook.notifications.dispatcher import NotificationDispatcher, notify_after_commit
from staybook.payments.gateway import PaymentGateway

from . import wallet
from .access import ensure_booking_access, owns_hotel
from .errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .identity import Actor, ActorRole
from .money import percent_of

logger = logging.getLogger(__name__)

REFUND_TYPES = ("cancellation", "hotel_cancellation", "no_show", "admin_refund")
METHOD_GATEWAY = "gateway"
METHOD_WALLET = "wallet"


@dataclass(frozen=True)
class RefundQuote:
    original_amount_cents: int
    cancellation_fee_cents: int
    refund_amount_cents: int
    fee_percentage: Decimal
    hours_until_check_in: float


def calculate_refund(
    original_amount_cents: int,
    *,
    check_in: datetime,
    cancellation_time_hours: int,
    cancellation_fee_percentage: Decimal | int,
    refund_type: str = "cancellation",
    now: datetime | None = None,
) -> RefundQuote:
    """Apply the fee policy. Deterministic for a given ``now``."""
    now = now or utc_now()
    hours_until = hours_between(now, check_in)
    pct = Decimal(str(cancellation_fee_percentage))

    if refund_type == "hotel_cancellation" or hours_until >= cancellation_time_hours:
        fee = 0
        applied = Decimal(0)
    else:
        fee = percent_of(original_amount_cents, pct)
        applied = pct

    return RefundQuote(
        original_amount_cents=original_amount_cents,
        cancellation_fee_cents=fee,
        refund_amount_cents=original_amount_cents - fee,
        fee_percentage=applied,
        hours_until_check_in=round(hours_until, 2),
    )


def _authorize_cancellation(
    cur: PgCursor, actor: Actor, booking: dict[str, Any], refund_type: str
) -> None:
    if refund_type == "admin_refund" and not actor.is_admin:
        raise AuthorizationError("Only admins can issue admin refunds")
    if refund_type == "hotel_cancellation" and actor.role is ActorRole.GUEST:
        raise AuthorizationError("Guests cannot request a hotel cancellation")
    ensure_booking_access(cur, actor, booking)


def _require_operator(cur: PgCursor, operator: Actor, booking: dict[str, Any]) -> None:
    if operator.is_admin:
        return
    if operator.role is ActorRole.HOTEL and owns_hotel(cur, operator, booking["hotel_id"]):
        return
    raise AuthorizationError("Only admins or the hotel can settle refunds")


def request_cancellation(
    booking_id: str,
    actor: Actor,
    reason: str | None,
    refund_type: str = "cancellation",
    *,
    notifier: NotificationDispatcher | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Cancel a booking and open its refund request.

    Steps:
    1. Lock the booking row.
    2. Authorize the actor for this refund type.
    3. Refuse if already cancelled or a refund request exists.
    4. Compute fee and refund amount from the hotel's policy.
    5. Insert the refund request and mark the booking cancelled.

    Returns:
        The refund request as a dict.

    Raises:
        ValidationError: Unknown refund type.
        NotFoundError: Unknown booking.
        AuthorizationError: Actor may not cancel this booking.
        ConflictError: Already cancelled or refund already requested.
    """
    if refund_type not in REFUND_TYPES:
        raise ValidationError(f"Unknown refund type: {refund_type!r}")
    now = now or utc_now()
    settings = get_settings()

    try:
        with unit_of_work() as uow:
            cur = uow.cur
            booking = get_booking(cur, booking_id, lock=True)
            if booking is None:
                raise NotFoundError(f"Booking {booking_id} not found", details={"booking_id": booking_id})
            _authorize_cancellation(cur, actor, booking, refund_type)

            if booking["status"] == "cancelled":
                raise ConflictError("Booking is already cancelled", details={"booking_id": booking_id})
            if get_refund_for_booking(cur, booking_id) is not None:
                raise ConflictError(
                    "Refund request already exists for this booking", details={"booking_id": booking_id}
                )

            hotel = get_hotel_settings(cur, booking["hotel_id"])
            if hotel is None:
                raise NotFoundError(f"Hotel {booking['hotel_id']} not found")

            quote = calculate_refund(
                booking["total_amount_cents"],
                check_in=booking["check_in"],
                cancellation_time_hours=hotel.cancellation_time_hours,
                cancellation_fee_percentage=hotel.cancellation_fee_percentage,
                refund_type=refund_type,
                now=now,
            )
            online = booking["payment_mode"] == "online"
            refund = insert_refund_request(
                cur,
                booking_id=booking_id,
                user_id=booking["user_id"],
                original_amount_cents=quote.original_amount_cents,
                cancellation_fee_cents=quote.cancellation_fee_cents,
                refund_amount_cents=quote.refund_amount_cents,
                cancellation_fee_percentage=quote.fee_percentage,
                refund_type=refund_type,
                reason=reason,
                refund_method=METHOD_GATEWAY if online else METHOD_WALLET,
                requested_by=actor.id,
                expected_processing_days=(
                    settings.online_refund_days if online else settings.offline_refund_days
                ),
            )
            mark_booking_cancelled(
                cur, booking_id=booking_id, cancelled_by=actor.id, reason=reason, cancelled_at=now
            )

            if notifier is not None:
                notify_after_commit(
                    uow,
                    notifier,
                    "refund_request_created",
                    booking["user_id"],
                    {
                        "booking_id": booking_id,
                        "refund_id": refund["id"],
                        "refund_amount_cents": quote.refund_amount_cents,
                        "cancellation_fee_cents": quote.cancellation_fee_cents,
                        "expected_days": refund["expected_processing_days"],
                    },
                )
    except UniqueViolation as exc:
        raise ConflictError(
            "Refund request already exists for this booking", details={"booking_id": booking_id}
        ) from exc

    logger.info(
        "refund requested",
        extra={
            "extra_fields": {
                "booking_id": booking_id,
                "refund_id": refund["id"],
                "refund_type": refund_type,
                "hours_until_check_in": quote.hours_until_check_in,
                "fee_cents": quote.cancellation_fee_cents,
                "refund_cents": quote.refund_amount_cents,
            }
        },
    )
    return refund


def _load_pending(cur: PgCursor, refund_id: str, *, lock: bool = False) -> dict[str, Any]:
    refund = _get_refund_row(cur, refund_id, lock=lock)
    if refund is None:
        raise NotFoundError(f"Refund {refund_id} not found", details={"refund_id": refund_id})
    if refund["status"] != "pending":
        raise ConflictError(
            f"Refund is already {refund['status']}", details={"refund_id": refund_id}
        )
    return refund


def process_refund(
    refund_id: str,
    operator: Actor,
    *,
    gateway: PaymentGateway | None = None,
    notifier: NotificationDispatcher | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Move the refund money and close the request.

    The amount moved never exceeds what was actually paid. Money the guest
    paid from their wallet is credited back to the wallet first. The rest
    goes back to the original online payment through the gateway when the
    request was opened for one and a completed online payment exists.
    Otherwise, or when ``method`` is ``wallet``, the rest is credited to
    the wallet too. Wallet credits happen in the same transaction that
    closes the request.

    Raises:
        NotFoundError: Unknown refund.
        AuthorizationError: Operator is neither admin nor the hotel.
        ConflictError: Refund no longer pending.
        ExternalGatewayError: Gateway refund failed; request stays pending.
    """
    if method not in (None, METHOD_GATEWAY, METHOD_WALLET):
        raise ValidationError(f"Unknown refund method: {method!r}")

    with txn() as cur:
        refund = _load_pending(cur, refund_id)
        booking = get_booking(cur, refund["booking_id"])
        _require_operator(cur, operator, booking)
        paid = sum_completed_payments(cur, booking["id"])
        paid_from_wallet = sum_wallet_payments(cur, booking["id"])
        online_payment = find_completed_online_payment(cur, booking["id"])

    payable = min(refund["refund_amount_cents"], paid)
    back_to_wallet = min(payable, paid_from_wallet)
    gateway_cents = payable - back_to_wallet
    use_gateway = (
        (method or refund["refund_method"]) == METHOD_GATEWAY
        and online_payment is not None
        and gateway_cents > 0
    )
    wallet_cents = payable if not use_gateway else back_to_wallet

    gateway_refund_id = None
    if use_gateway:
        if gateway is None:
            raise ValidationError("A payment gateway is required for this refund")
        gateway_refund_id = gateway.refund(
            online_payment["gateway_payment_id"],
            gateway_cents,
            idempotency_key=f"refund:{refund_id}",
        )

    with unit_of_work() as uow:
        cur = uow.cur
        _load_pending(cur, refund_id, lock=True)
        updated = mark_refund_processed(
            cur,
            refund_id=refund_id,
            processed_by=operator.id,
            processed_at=utc_now(),
            refund_method=METHOD_GATEWAY if use_gateway else METHOD_WALLET,
            gateway_refund_id=gateway_refund_id,
        )

        if wallet_cents > 0:
            wallet.credit(
                refund["user_id"],
                wallet_cents,
                source="refund",
                description=f"Refund for booking {booking['id']}",
                reference_id=booking["id"],
                reference_type="booking",
                metadata={"refund_id": refund_id},
                cur=cur,
            )
        if payable > 0:
            update_booking_status(cur, booking_id=booking["id"], payment_status="refunded")

        if notifier is not None:
            notify_after_commit(
                uow,
                notifier,
                "refund_processed",
                refund["user_id"],
                {"booking_id": booking["id"], "refund_id": refund_id, "amount_cents": payable},
            )

    logger.info(
        "refund processed",
        extra={
            "extra_fields": {
                "refund_id": refund_id,
                "booking_id": booking["id"],
                "method": updated["refund_method"],
                "amount_cents": payable,
                "gateway_cents": gateway_cents if use_gateway else 0,
                "wallet_cents": wallet_cents,
            }
        },
    )
    return updated


def reject_refund(
    refund_id: str,
    operator: Actor,
    reason: str,
    *,
    notifier: NotificationDispatcher | None = None,
) -> dict[str, Any]:
    """Reject a pending refund and reinstate the booking as confirmed.

    Raises:
        NotFoundError: Unknown refund.
        AuthorizationError: Operator is neither admin nor the hotel.
        ConflictError: Refund no longer pending, or the room was rebooked
            for the same dates meanwhile.
    """
    if not reason:
        raise ValidationError("A rejection reason is required")

    try:
        with unit_of_work() as uow:
            cur = uow.cur
            refund = _load_pending(cur, refund_id, lock=True)
            booking = get_booking(cur, refund["booking_id"], lock=True)
            _require_operator(cur, operator, booking)

            updated = mark_refund_rejected(
                cur,
                refund_id=refund_id,
                processed_by=operator.id,
                processed_at=utc_now(),
                rejection_reason=reason,
            )
            revert_booking_cancellation(cur, booking_id=booking["id"])

            if notifier is not None:
                notify_after_commit(
                    uow,
                    notifier,
                    "refund_rejected",
                    refund["user_id"],
                    {"booking_id": booking["id"], "refund_id": refund_id, "reason": reason},
                )
    except ExclusionViolation as exc:
        raise ConflictError(
            "Room was rebooked for these dates; booking cannot be reinstated",
            details={"refund_id": refund_id},
        ) from exc

    logger.info(
        "refund rejected",
        extra={"extra_fields": {"refund_id": refund_id, "booking_id": refund["booking_id"]}},
    )
    return updated


def get_refund(refund_id: str, actor: Actor) -> dict[str, Any]:
    with txn() as cur:
        refund = _get_refund_row(cur, refund_id)
        if refund is None:
            raise NotFoundError(f"Refund {refund_id} not found", details={"refund_id": refund_id})
        booking = get_booking(cur, refund["booking_id"])
        ensure_booking_access(cur, actor, booking)
    return refund
