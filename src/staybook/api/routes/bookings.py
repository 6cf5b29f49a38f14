"""Booking endpoints: create, read, pay, settle, cancel."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from staybook.api.auth import get_current_actor
from staybook.api.deps import get_notifier, get_payment_gateway
from staybook.api.routes.pricing import serialize_price
from staybook.domain import bookings, payments, refunds
from staybook.domain.identity import Actor
from staybook.notifications.dispatcher import NotificationDispatcher
from staybook.payments.gateway import PaymentGateway

router = APIRouter(prefix="/bookings", tags=["bookings"])


class CreateBookingRequest(BaseModel):
    hotel_id: str
    room_id: str
    check_in: datetime
    check_out: datetime
    guest_count: int = Field(ge=1)
    quoted_total_cents: int = Field(ge=0)
    payment_mode: str = "offline"
    booking_type: str = "daily"
    coupon_code: str | None = None
    advance_cents: int | None = Field(default=None, ge=0)
    wallet_amount_cents: int = Field(default=0, ge=0)
    guest_name: str | None = None
    guest_email: str | None = None
    guest_phone: str | None = None
    special_requests: str | None = None


class VerifyPaymentRequest(BaseModel):
    order_id: str
    payment_id: str
    signature: str | None = None


class CancelBookingRequest(BaseModel):
    reason: str | None = None
    refund_type: str = "cancellation"


def _payment_order_body(order: payments.PaymentOrder | None) -> dict | None:
    if order is None:
        return None
    return {
        "payment_id": order.payment_id,
        "order_id": order.order_id,
        "amount_cents": order.amount_cents,
        "currency": order.currency,
        "provider": order.provider,
    }


@router.post("", status_code=201)
def create_booking(
    body: CreateBookingRequest,
    actor: Actor = Depends(get_current_actor),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> dict:
    request = bookings.BookingRequest(
        user_id=actor.id,
        hotel_id=body.hotel_id,
        room_id=body.room_id,
        check_in=body.check_in,
        check_out=body.check_out,
        guest_count=body.guest_count,
        client_quoted_cents=body.quoted_total_cents,
        payment_mode=body.payment_mode,
        booking_type=body.booking_type,
        coupon_code=body.coupon_code,
        advance_cents=body.advance_cents,
        wallet_amount_cents=body.wallet_amount_cents,
        guest_name=body.guest_name,
        guest_email=body.guest_email,
        guest_phone=body.guest_phone,
        special_requests=body.special_requests,
    )
    result = bookings.create_booking(request, gateway=gateway, notifier=notifier)
    return {
        "booking": result.booking,
        "payments": result.payments,
        "price": serialize_price(result.price),
        "payment_order": _payment_order_body(result.payment_order),
    }


@router.get("/{booking_id}")
def read_booking(
    booking_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
) -> dict:
    return bookings.get_booking(booking_id, actor)


@router.post("/{booking_id}/payment-order")
def create_payment_order(
    booking_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> dict:
    order = payments.create_payment_order(booking_id, gateway=gateway, actor=actor)
    return _payment_order_body(order)


@router.post("/{booking_id}/payments/verify")
def verify_payment(
    body: VerifyPaymentRequest,
    booking_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> dict:
    return payments.confirm_online_payment(
        body.order_id,
        body.payment_id,
        body.signature,
        gateway=gateway,
        notifier=notifier,
        actor=actor,
    )


@router.post("/{booking_id}/payments/{payment_id}/settle")
def settle_payment(
    booking_id: str = Path(...),
    payment_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
) -> dict:
    return payments.settle_offline_payment(booking_id, payment_id, actor)


@router.post("/{booking_id}/cancel", status_code=201)
def cancel_booking(
    body: CancelBookingRequest,
    booking_id: str = Path(...),
    actor: Actor = Depends(get_current_actor),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> dict:
    return refunds.request_cancellation(
        booking_id, actor, body.reason, body.refund_type, notifier=notifier
    )
