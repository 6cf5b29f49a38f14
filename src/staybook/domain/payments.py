"""Payment settlement for bookings.

Online bookings are paid through the gateway: an order is created after
the booking commits, then the payment is confirmed either by the client
(``confirm_online_payment``) or by the gateway webhook
(``apply_gateway_event``). Both paths apply the same transition and are
safe to replay.

Offline bookings are paid at the hotel; an operator records each
collected payment row with ``settle_offline_payment``.

Invariant: the completed payments of a booking never exceed its total.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from staybook.infra.config import get_settings
from staybook.infra.db import txn, unit_of_work
from staybook.infra.repositories.bookings_repository import get_booking, update_booking_status
from staybook.infra.repositories.events_repository import record_event
from staybook.infra.repositories.payments_repository import (
    get_payment,
    get_payment_by_order,
    insert_payment,
    list_booking_payments,
    mark_payment_completed,
    mark_payment_failed,
    set_gateway_order,
    sum_completed_payments,
)
from staybook.notifications.dispatcher import NotificationDispatcher, notify_after_commit
from staybook.payments.gateway import PaymentGateway
from staybook.payments.webhook import HANDLED_EVENT_TYPES, GatewayEvent

from .access import ensure_booking_access
from .errors import ConflictError, NotFoundError, ValidationError
from .identity import Actor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentOrder:
    booking_id: str
    payment_id: str
    order_id: str
    amount_cents: int
    currency: str
    provider: str


def _load_booking(cur: PgCursor, booking_id: str, *, lock: bool = False) -> dict[str, Any]:
    booking = get_booking(cur, booking_id, lock=lock)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found", details={"booking_id": booking_id})
    return booking


def _reopen_payment(
    cur: PgCursor, booking: dict[str, Any], payments: list[dict[str, Any]]
) -> dict[str, Any]:
    """New pending online row for what is still owed after failed attempts.

    Raises:
        ConflictError: Booking no longer awaiting payment or fully paid.
    """
    owed = booking["total_amount_cents"] - sum_completed_payments(cur, booking["id"])
    if booking["status"] != "pending" or owed <= 0:
        raise ConflictError("Booking has no pending payment", details={"booking_id": booking["id"]})

    currency = payments[-1]["currency"] if payments else get_settings().currency
    payment_id = insert_payment(
        cur,
        booking_id=booking["id"],
        amount_cents=owed,
        currency=currency,
        payment_mode="online",
        payment_type="full" if owed == booking["total_amount_cents"] else "remaining",
    )
    logger.info(
        "payment reopened after failed attempts",
        extra={"extra_fields": {"booking_id": booking["id"], "payment_id": payment_id, "amount_cents": owed}},
    )
    return {
        "id": payment_id,
        "booking_id": booking["id"],
        "amount_cents": owed,
        "currency": currency,
        "status": "pending",
        "provider": None,
        "gateway_order_id": None,
    }


def create_payment_order(
    booking_id: str,
    *,
    gateway: PaymentGateway,
    actor: Actor | None = None,
) -> PaymentOrder:
    """Create (or return the existing) gateway order for an online booking.

    Steps:
    1. Read the booking and its pending online payment row. When every
       earlier attempt failed and the booking is still unpaid, open a new
       pending row for the amount still owed.
    2. If the row already carries an order id, return it.
    3. Otherwise create the order at the gateway, outside any transaction.
    4. Record the order id on the row; if a concurrent caller won, return
       theirs.

    Raises:
        NotFoundError: Unknown booking.
        AuthorizationError: ``actor`` may not act on the booking.
        ValidationError: Booking is not paid online.
        ConflictError: Booking cancelled or nothing left to pay.
        ExternalGatewayError: Gateway call failed.
    """
    with txn() as cur:
        booking = _load_booking(cur, booking_id, lock=True)
        if actor is not None:
            ensure_booking_access(cur, actor, booking)
        if booking["payment_mode"] != "online":
            raise ValidationError("Booking is not paid online", details={"booking_id": booking_id})
        if booking["status"] == "cancelled":
            raise ConflictError("Booking is cancelled", details={"booking_id": booking_id})

        payments = list_booking_payments(cur, booking_id)
        pending = [p for p in payments if p["status"] == "pending"]
        if pending:
            payment = pending[0]
        else:
            payment = _reopen_payment(cur, booking, payments)

    if payment["gateway_order_id"]:
        return PaymentOrder(
            booking_id=booking_id,
            payment_id=payment["id"],
            order_id=payment["gateway_order_id"],
            amount_cents=payment["amount_cents"],
            currency=payment["currency"],
            provider=payment["provider"] or gateway.name,
        )

    order_id = gateway.create_order(
        payment["amount_cents"], payment["currency"], receipt=f"booking:{booking_id}:{payment['id']}"
    )

    with txn() as cur:
        if not set_gateway_order(
            cur, payment_id=payment["id"], gateway_order_id=order_id, provider=gateway.name
        ):
            current = get_payment(cur, payment["id"])
            if current is None or not current["gateway_order_id"]:
                raise ConflictError(
                    "Payment is no longer pending", details={"payment_id": payment["id"]}
                )
            order_id = current["gateway_order_id"]

    logger.info(
        "payment order created",
        extra={"extra_fields": {"booking_id": booking_id, "payment_id": payment["id"], "order_id": order_id}},
    )
    return PaymentOrder(
        booking_id=booking_id,
        payment_id=payment["id"],
        order_id=order_id,
        amount_cents=payment["amount_cents"],
        currency=payment["currency"],
        provider=gateway.name,
    )


def _complete_payment(
    cur: PgCursor,
    payment: dict[str, Any],
    *,
    gateway_payment_id: str | None = None,
    settled_by: str | None = None,
) -> tuple[bool, dict[str, Any]]:
    """Mark a payment completed and roll the booking forward.

    Returns:
        (changed, booking). ``changed`` is False on replays.

    Raises:
        ConflictError: Completing would exceed the booking total.
    """
    booking = _load_booking(cur, payment["booking_id"], lock=True)
    if payment["status"] == "completed":
        return False, booking

    paid = sum_completed_payments(cur, booking["id"])
    if paid + payment["amount_cents"] > booking["total_amount_cents"]:
        raise ConflictError(
            "Payment would exceed the booking total",
            details={"booking_id": booking["id"], "payment_id": payment["id"]},
        )

    mark_payment_completed(
        cur,
        payment_id=payment["id"],
        gateway_payment_id=gateway_payment_id,
        settled_by=settled_by,
    )
    paid += payment["amount_cents"]

    new_status = "confirmed" if booking["status"] == "pending" else None
    new_payment_status = "completed" if paid >= booking["total_amount_cents"] else None
    if booking["status"] == "cancelled":
        logger.warning(
            "payment completed on cancelled booking",
            extra={"extra_fields": {"booking_id": booking["id"], "payment_id": payment["id"]}},
        )
        new_status = None
        new_payment_status = None
    if new_status or new_payment_status:
        update_booking_status(
            cur, booking_id=booking["id"], status=new_status, payment_status=new_payment_status
        )
    return True, booking


def confirm_online_payment(
    order_id: str,
    payment_id: str,
    signature: str | None,
    *,
    gateway: PaymentGateway,
    notifier: NotificationDispatcher | None = None,
    actor: Actor | None = None,
) -> dict[str, Any]:
    """Client-side confirmation of an online payment.

    The gateway is asked first, outside the transaction. A payment the
    gateway does not confirm is marked failed and reported as a
    ValidationError.

    Returns:
        Dict with booking_id, payment_id and status.

    Raises:
        NotFoundError: Unknown order.
        AuthorizationError: ``actor`` may not act on the booking.
        ValidationError: Verification failed.
        ExternalGatewayError: Gateway call failed.
    """
    with txn() as cur:
        payment = get_payment_by_order(cur, order_id)
        if payment is None:
            raise NotFoundError(f"Payment order {order_id} not found", details={"order_id": order_id})
        if actor is not None:
            ensure_booking_access(cur, actor, _load_booking(cur, payment["booking_id"]))

    verified = gateway.verify_payment(order_id, payment_id, signature)

    with unit_of_work() as uow:
        payment = get_payment_by_order(uow.cur, order_id, lock=True)
        if not verified:
            mark_payment_failed(uow.cur, payment_id=payment["id"])
        else:
            changed, booking = _complete_payment(uow.cur, payment, gateway_payment_id=payment_id)
            if changed and notifier is not None:
                notify_after_commit(
                    uow,
                    notifier,
                    "payment_success",
                    booking["user_id"],
                    {"booking_id": booking["id"], "amount_cents": payment["amount_cents"]},
                )

    if not verified:
        logger.warning(
            "payment verification failed",
            extra={"extra_fields": {"order_id": order_id, "booking_id": payment["booking_id"]}},
        )
        raise ValidationError("Payment verification failed", details={"order_id": order_id})

    return {"booking_id": payment["booking_id"], "payment_id": payment["id"], "status": "completed"}


def apply_gateway_event(
    event: GatewayEvent,
    *,
    notifier: NotificationDispatcher | None = None,
) -> str:
    """Reconcile a verified gateway webhook event.

    Returns:
        Outcome: ``duplicate``, ``ignored``, ``unknown_order``,
        ``completed``, ``already_completed`` or ``failed``.
    """
    with unit_of_work() as uow:
        if not record_event(uow.cur, source="stripe", external_id=event.event_id):
            return "duplicate"
        if event.event_type not in HANDLED_EVENT_TYPES or not event.order_id:
            return "ignored"

        payment = get_payment_by_order(uow.cur, event.order_id, lock=True)
        if payment is None:
            logger.warning(
                "gateway event for unknown order",
                extra={"extra_fields": {"event_type": event.event_type}},
            )
            return "unknown_order"

        if not event.succeeded:
            mark_payment_failed(uow.cur, payment_id=payment["id"])
            outcome = "failed"
        else:
            changed, booking = _complete_payment(
                uow.cur, payment, gateway_payment_id=event.payment_id
            )
            outcome = "completed" if changed else "already_completed"
            if changed and notifier is not None:
                notify_after_commit(
                    uow,
                    notifier,
                    "payment_success",
                    booking["user_id"],
                    {"booking_id": booking["id"], "amount_cents": payment["amount_cents"]},
                )

    logger.info(
        "gateway event applied",
        extra={"extra_fields": {"event_type": event.event_type, "outcome": outcome}},
    )
    return outcome


def settle_offline_payment(
    booking_id: str,
    payment_id: str,
    operator: Actor,
) -> dict[str, Any]:
    """Record an offline payment row as collected at the hotel.

    Returns:
        Dict with booking_id, payment_id, status and changed (False when
        the row was already completed).

    Raises:
        NotFoundError: Unknown booking or payment.
        AuthorizationError: Operator is neither admin nor the hotel owner.
        ValidationError: Payment is not an offline payment of this booking.
        ConflictError: Booking cancelled or total would be exceeded.
    """
    with unit_of_work() as uow:
        booking = _load_booking(uow.cur, booking_id, lock=True)
        ensure_booking_access(uow.cur, operator, booking, allow_guest=False)

        payment = get_payment(uow.cur, payment_id, lock=True)
        if payment is None or payment["booking_id"] != booking_id:
            raise NotFoundError(f"Payment {payment_id} not found", details={"payment_id": payment_id})
        if payment["payment_mode"] != "offline":
            raise ValidationError("Only offline payments can be settled manually")
        if booking["status"] == "cancelled":
            raise ConflictError("Booking is cancelled", details={"booking_id": booking_id})

        changed, _ = _complete_payment(uow.cur, payment, settled_by=operator.id)

    logger.info(
        "offline payment settled",
        extra={"extra_fields": {"booking_id": booking_id, "payment_id": payment_id, "changed": changed}},
    )
    return {"booking_id": booking_id, "payment_id": payment_id, "status": "completed", "changed": changed}
