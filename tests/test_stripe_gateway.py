"""Tests for the Stripe gateway adapter (Stripe client mocked)."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import stripe

from staybook.domain.errors import ExternalGatewayError
from staybook.payments.gateway import get_gateway, set_gateway
from staybook.payments.stripe_gateway import StripeGateway


@pytest.fixture
def client():
    mock = MagicMock()
    with patch("staybook.payments.stripe_gateway.stripe.StripeClient", return_value=mock):
        yield mock


class TestStripeGateway:
    def test_create_order(self, client):
        client.v1.payment_intents.create.return_value = SimpleNamespace(id="pi_1")
        order_id = StripeGateway("sk_test").create_order(200000, "INR", receipt="booking:b:p")
        assert order_id == "pi_1"
        kwargs = client.v1.payment_intents.create.call_args.kwargs
        assert kwargs["params"]["amount"] == 200000
        assert kwargs["params"]["currency"] == "inr"
        assert kwargs["options"] == {"idempotency_key": "booking:b:p:order"}

    def test_stripe_error_becomes_gateway_error(self, client):
        client.v1.payment_intents.create.side_effect = stripe.APIConnectionError("down")
        with pytest.raises(ExternalGatewayError) as exc_info:
            StripeGateway("sk_test").create_order(100, "inr", receipt="r")
        assert exc_info.value.retryable

    @pytest.mark.parametrize(
        "status, charge, payment_id, expected",
        [
            ("succeeded", "ch_1", "ch_1", True),
            ("succeeded", "ch_1", "pi_1", True),
            ("succeeded", "ch_1", "ch_other", False),
            ("processing", "ch_1", "ch_1", False),
        ],
    )
    def test_verify_payment(self, client, status, charge, payment_id, expected):
        client.v1.payment_intents.retrieve.return_value = SimpleNamespace(
            id="pi_1", status=status, latest_charge=charge
        )
        assert StripeGateway("sk_test").verify_payment("pi_1", payment_id, None) is expected

    def test_refund_by_charge(self, client):
        client.v1.refunds.create.return_value = SimpleNamespace(id="re_1")
        refund_id = StripeGateway("sk_test").refund("ch_1", 5000, idempotency_key="refund:r-1")
        assert refund_id == "re_1"
        kwargs = client.v1.refunds.create.call_args.kwargs
        assert kwargs["params"] == {"amount": 5000, "charge": "ch_1"}
        assert kwargs["options"] == {"idempotency_key": "refund:r-1"}

    def test_refund_by_intent(self, client):
        client.v1.refunds.create.return_value = SimpleNamespace(id="re_1")
        StripeGateway("sk_test").refund("pi_1", 5000)
        assert client.v1.refunds.create.call_args.kwargs["params"]["payment_intent"] == "pi_1"

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
        with pytest.raises(RuntimeError, match="STRIPE_SECRET_KEY"):
            StripeGateway().create_order(100, "inr", receipt="r")


class TestGatewaySingleton:
    def test_default_is_stripe(self):
        assert isinstance(get_gateway(), StripeGateway)

    def test_override(self):
        fake = MagicMock()
        set_gateway(fake)
        assert get_gateway() is fake
