"""Tests for stay pricing (no DB)."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from helpers import GUEST_ID, ROOM_ID, make_coupon, make_hotel, make_room, utc
from staybook.domain.coupons import CouponQuote
from staybook.domain.errors import PriceMismatchError, ValidationError
from staybook.domain.pricing import apply_adjustments, billable_units, price_stay, quote_stay

MODULE = "staybook.domain.pricing"


@pytest.fixture
def repo():
    with patch(f"{MODULE}.get_room") as get_room, \
         patch(f"{MODULE}.get_hotel_settings") as hotel, \
         patch(f"{MODULE}.list_active_adjustments") as adjustments, \
         patch(f"{MODULE}.validate_coupon") as validate:
        get_room.return_value = make_room()
        hotel.return_value = make_hotel()
        adjustments.return_value = []
        yield {"room": get_room, "adjustments": adjustments, "validate": validate}


class TestBillableUnits:
    def test_two_nights(self):
        assert billable_units(utc(2024, 6, 1), utc(2024, 6, 3), "daily") == 2

    def test_partial_night_rounds_up(self):
        assert billable_units(utc(2024, 6, 1, 14), utc(2024, 6, 3, 11), "daily") == 2
        assert billable_units(utc(2024, 6, 1, 10), utc(2024, 6, 3, 11), "daily") == 3

    def test_hours(self):
        assert billable_units(utc(2024, 6, 1, 10), utc(2024, 6, 1, 13, 30), "hourly") == 4

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            billable_units(utc(2024, 6, 1), utc(2024, 6, 3), "weekly")


class TestApplyAdjustments:
    def test_percentages_compound(self):
        adjs = [
            {"adjustment_type": "percentage", "value": Decimal("10")},
            {"adjustment_type": "percentage", "value": Decimal("10")},
        ]
        assert apply_adjustments(100000, adjs) == 121000

    def test_fixed_adds_currency_units(self):
        assert apply_adjustments(100000, [{"adjustment_type": "fixed", "value": Decimal("50")}]) == 105000

    def test_floor_at_zero(self):
        assert apply_adjustments(1000, [{"adjustment_type": "fixed", "value": Decimal("-500")}]) == 0

    def test_order_matters(self):
        pct_then_fixed = [
            {"adjustment_type": "percentage", "value": Decimal("10")},
            {"adjustment_type": "fixed", "value": Decimal("100")},
        ]
        assert apply_adjustments(100000, pct_then_fixed) == 120000
        assert apply_adjustments(100000, list(reversed(pct_then_fixed))) == 121000


class TestQuoteStay:
    def test_scenario_a_two_nights(self, repo):
        price = quote_stay(MagicMock(), ROOM_ID, utc(2024, 6, 1), utc(2024, 6, 3))
        assert price.units == 2
        assert price.total_cents == 200000
        assert price.discount_cents == 0

    def test_scenario_b_coupon(self, repo):
        repo["validate"].return_value = CouponQuote(make_coupon(), 20000, 180000)
        price = quote_stay(
            MagicMock(), ROOM_ID, utc(2024, 6, 1), utc(2024, 6, 3), coupon_code="SAVE10", user_id=GUEST_ID
        )
        assert price.total_cents == 180000
        assert price.discount_cents == 20000
        # coupon sees the adjusted subtotal
        assert repo["validate"].call_args.args[4] == 200000

    def test_adjustments_before_coupon(self, repo):
        repo["adjustments"].return_value = [
            {"id": "a1", "adjustment_type": "percentage", "value": Decimal("10")}
        ]
        repo["validate"].return_value = CouponQuote(make_coupon(), 22000, 198000)
        price = quote_stay(
            MagicMock(), ROOM_ID, utc(2024, 6, 1), utc(2024, 6, 3), coupon_code="SAVE10", user_id=GUEST_ID
        )
        assert price.adjusted_cents == 220000
        assert repo["validate"].call_args.args[4] == 220000
        assert price.adjustment_ids == ["a1"]

    def test_hourly_requires_hourly_rate(self, repo):
        repo["room"].return_value = make_room(price_per_hour_cents=None)
        with pytest.raises(ValidationError):
            quote_stay(MagicMock(), ROOM_ID, utc(2024, 6, 1, 10), utc(2024, 6, 1, 12), booking_type="hourly")

    def test_hourly_price(self, repo):
        price = quote_stay(
            MagicMock(), ROOM_ID, utc(2024, 6, 1, 10), utc(2024, 6, 1, 12), booking_type="hourly"
        )
        assert price.total_cents == 30000

    def test_coupon_needs_user(self, repo):
        with pytest.raises(ValidationError):
            quote_stay(MagicMock(), ROOM_ID, utc(2024, 6, 1), utc(2024, 6, 3), coupon_code="SAVE10")


class TestPriceStay:
    def test_matching_quote(self, repo):
        price = price_stay(MagicMock(), ROOM_ID, utc(2024, 6, 1), utc(2024, 6, 3), client_quoted_cents=200000)
        assert price.total_cents == 200000

    def test_one_cent_tolerance(self, repo):
        price_stay(MagicMock(), ROOM_ID, utc(2024, 6, 1), utc(2024, 6, 3), client_quoted_cents=200001)

    def test_tampered_quote(self, repo):
        with pytest.raises(PriceMismatchError) as exc_info:
            price_stay(MagicMock(), ROOM_ID, utc(2024, 6, 1), utc(2024, 6, 3), client_quoted_cents=100)
        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.server_cents == 200000
        assert exc_info.value.client_cents == 100
