"""Price quotes and coupon dry-runs. Nothing is written."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from staybook.api.auth import get_current_actor
from staybook.domain.coupons import validate_coupon
from staybook.domain.identity import Actor
from staybook.domain.pricing import PriceBreakdown, quote_stay
from staybook.infra.db import txn

router = APIRouter(tags=["pricing"])


class QuoteRequest(BaseModel):
    room_id: str
    check_in: datetime
    check_out: datetime
    booking_type: str = "daily"
    coupon_code: str | None = None


class CouponValidateRequest(BaseModel):
    code: str
    hotel_id: str
    room_type_id: str | None = None
    order_amount_cents: int = Field(ge=0)
    booking_type: str = "daily"


def serialize_price(price: PriceBreakdown) -> dict:
    return {
        "room_id": price.room_id,
        "booking_type": price.booking_type,
        "units": price.units,
        "unit_rate_cents": price.unit_rate_cents,
        "base_cents": price.base_cents,
        "adjusted_cents": price.adjusted_cents,
        "discount_cents": price.discount_cents,
        "total_cents": price.total_cents,
        "currency": price.currency,
        "coupon_code": price.coupon.coupon["code"] if price.coupon else None,
    }


@router.post("/pricing/quote")
def quote(body: QuoteRequest, actor: Actor = Depends(get_current_actor)) -> dict:
    with txn() as cur:
        price = quote_stay(
            cur,
            body.room_id,
            body.check_in,
            body.check_out,
            booking_type=body.booking_type,
            coupon_code=body.coupon_code,
            user_id=actor.id,
        )
    return serialize_price(price)


@router.post("/coupons/validate")
def validate(body: CouponValidateRequest, actor: Actor = Depends(get_current_actor)) -> dict:
    with txn() as cur:
        result = validate_coupon(
            cur,
            body.code,
            body.hotel_id,
            body.room_type_id,
            body.order_amount_cents,
            actor.id,
            body.booking_type,
        )
    return {
        "valid": True,
        "coupon_id": result.coupon_id,
        "code": result.coupon["code"],
        "discount_cents": result.discount_cents,
        "final_amount_cents": result.final_amount_cents,
    }
