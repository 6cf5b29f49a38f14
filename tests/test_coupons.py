"""Tests for coupon validation order and discount math (no DB)."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from psycopg2.errors import UniqueViolation

from helpers import CITY_ID, GUEST_ID, HOTEL_ID, ROOM_TYPE_ID, make_coupon, make_hotel, utc
from staybook.domain.coupons import CouponQuote, claim_coupon, compute_discount, validate_coupon
from staybook.domain.errors import (
    ConflictError,
    CouponConflictError,
    CouponError,
    CouponInvalidError,
    CouponNotFoundError,
    NotFoundError,
    ValidationError,
)

MODULE = "staybook.domain.coupons"
NOW = utc(2024, 5, 1)


@pytest.fixture
def repo():
    with patch(f"{MODULE}.get_coupon_by_code") as get_coupon, \
         patch(f"{MODULE}.has_user_used_coupon") as used, \
         patch(f"{MODULE}.list_coupon_mappings") as mappings, \
         patch(f"{MODULE}.get_hotel_settings") as hotel:
        get_coupon.return_value = make_coupon()
        used.return_value = False
        mappings.return_value = []
        hotel.return_value = make_hotel()
        yield {"coupon": get_coupon, "used": used, "mappings": mappings, "hotel": hotel}


def _validate(order_cents=200000, booking_type="daily"):
    return validate_coupon(
        MagicMock(), "SAVE10", HOTEL_ID, ROOM_TYPE_ID, order_cents, GUEST_ID, booking_type, now=NOW
    )


class TestComputeDiscount:
    def test_percentage(self):
        assert compute_discount(make_coupon(), 200000) == 20000

    def test_percentage_capped(self):
        coupon = make_coupon(discount_value=Decimal("50"), max_discount_cents=30000)
        assert compute_discount(coupon, 200000) == 30000

    def test_fixed_in_currency_units(self):
        coupon = make_coupon(discount_type="fixed", discount_value=Decimal("150"))
        assert compute_discount(coupon, 200000) == 15000

    def test_never_above_order(self):
        coupon = make_coupon(discount_type="fixed", discount_value=Decimal("5000"))
        assert compute_discount(coupon, 1000) == 1000


class TestValidateCoupon:
    def test_valid_coupon_quote(self, repo):
        quote = _validate()
        assert quote.discount_cents == 20000
        assert quote.final_amount_cents == 180000

    def test_not_found(self, repo):
        repo["coupon"].return_value = None
        with pytest.raises(CouponNotFoundError) as exc_info:
            _validate()
        assert isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.reason_code == "not_found"

    def test_inactive_beats_already_used(self, repo):
        repo["coupon"].return_value = make_coupon(status="inactive")
        repo["used"].return_value = True
        with pytest.raises(CouponInvalidError) as exc_info:
            _validate()
        assert exc_info.value.reason_code == "inactive"

    def test_already_used_is_conflict(self, repo):
        repo["used"].return_value = True
        with pytest.raises(CouponConflictError) as exc_info:
            _validate()
        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.reason_code == "already_used"

    def test_already_used_beats_expired(self, repo):
        repo["used"].return_value = True
        repo["coupon"].return_value = make_coupon(valid_to=utc(2024, 1, 1))
        with pytest.raises(CouponConflictError):
            _validate()

    def test_outside_validity(self, repo):
        repo["coupon"].return_value = make_coupon(valid_from=utc(2024, 6, 1))
        with pytest.raises(CouponInvalidError) as exc_info:
            _validate()
        assert exc_info.value.reason_code == "outside_validity"

    def test_usage_limit_reached(self, repo):
        repo["coupon"].return_value = make_coupon(usage_limit=5, used_count=5)
        with pytest.raises(CouponConflictError) as exc_info:
            _validate()
        assert exc_info.value.reason_code == "usage_limit_reached"

    def test_limit_beats_min_order(self, repo):
        repo["coupon"].return_value = make_coupon(usage_limit=1, used_count=1, min_order_cents=10**9)
        with pytest.raises(CouponConflictError):
            _validate()

    def test_min_order(self, repo):
        repo["coupon"].return_value = make_coupon(min_order_cents=300000)
        with pytest.raises(CouponInvalidError) as exc_info:
            _validate()
        assert exc_info.value.reason_code == "below_min_order"

    def test_booking_type(self, repo):
        repo["coupon"].return_value = make_coupon(applicable_booking_types="hourly")
        with pytest.raises(CouponInvalidError) as exc_info:
            _validate(booking_type="daily")
        assert exc_info.value.reason_code == "booking_type_not_applicable"

    def test_zero_mappings_valid_everywhere(self, repo):
        repo["mappings"].return_value = []
        assert _validate().discount_cents == 20000

    @pytest.mark.parametrize(
        "mapping",
        [
            {"city_id": None, "hotel_id": HOTEL_ID, "room_type_id": None},
            {"city_id": None, "hotel_id": None, "room_type_id": ROOM_TYPE_ID},
            {"city_id": CITY_ID, "hotel_id": None, "room_type_id": None},
        ],
    )
    def test_matching_mapping(self, repo, mapping):
        repo["mappings"].return_value = [mapping]
        assert _validate().discount_cents == 20000

    def test_non_matching_mapping(self, repo):
        repo["mappings"].return_value = [{"city_id": "other", "hotel_id": "other", "room_type_id": None}]
        with pytest.raises(CouponInvalidError) as exc_info:
            _validate()
        assert exc_info.value.reason_code == "not_applicable"
        assert isinstance(exc_info.value, ValidationError)


class TestClaimCoupon:
    def _quote(self):
        return CouponQuote(coupon=make_coupon(), discount_cents=20000, final_amount_cents=180000)

    def test_claims_slot_and_records_usage(self):
        with patch(f"{MODULE}.claim_coupon_slot", return_value=True) as claim, \
             patch(f"{MODULE}.insert_coupon_usage") as insert:
            cur = MagicMock()
            claim_coupon(cur, quote=self._quote(), user_id=GUEST_ID, booking_id="b-1")
        claim.assert_called_once_with(cur, coupon_id=make_coupon()["id"])
        assert insert.call_args.kwargs["discount_cents"] == 20000

    def test_exhausted_slot(self):
        with patch(f"{MODULE}.claim_coupon_slot", return_value=False), \
             patch(f"{MODULE}.insert_coupon_usage") as insert:
            with pytest.raises(CouponConflictError):
                claim_coupon(MagicMock(), quote=self._quote(), user_id=GUEST_ID, booking_id="b-1")
        insert.assert_not_called()

    def test_concurrent_reuse_by_same_guest(self):
        with patch(f"{MODULE}.claim_coupon_slot", return_value=True), \
             patch(f"{MODULE}.insert_coupon_usage", side_effect=UniqueViolation()):
            with pytest.raises(CouponError) as exc_info:
                claim_coupon(MagicMock(), quote=self._quote(), user_id=GUEST_ID, booking_id="b-1")
        assert exc_info.value.reason_code == "already_used"
