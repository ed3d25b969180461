import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe

from storefront.errors import (
    GatewayError,
    GatewayUnavailableError,
    SignatureVerificationError,
    ValidationError,
)
from storefront.payments.gateway import StripeGateway


@pytest.fixture
def gw():
    return StripeGateway("sk_test_123", "whsec_test")


def test_create_payment_intent_passes_key_per_call(gw, monkeypatch):
    fake_create = MagicMock(return_value=SimpleNamespace(
        id="pi_1", client_secret="pi_1_secret", status="requires_payment_method", amount=2550, latest_charge=None,
    ))
    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)

    intent = gw.create_payment_intent(
        amount=2550, currency="usd", metadata={"email": "a@b.c", "item_count": "1"}, receipt_email="a@b.c",
    )

    assert intent.id == "pi_1"
    assert intent.client_secret == "pi_1_secret"
    kwargs = fake_create.call_args.kwargs
    assert kwargs["api_key"] == "sk_test_123"
    assert kwargs["amount"] == 2550
    assert kwargs["currency"] == "usd"
    assert kwargs["receipt_email"] == "a@b.c"
    assert kwargs["automatic_payment_methods"] == {"enabled": True}


def test_create_payment_intent_without_key_is_unavailable(monkeypatch):
    fake_create = MagicMock()
    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
    with pytest.raises(GatewayUnavailableError) as exc:
        StripeGateway("").create_payment_intent(amount=100, currency="usd", metadata={})
    assert exc.value.status_code == 503
    fake_create.assert_not_called()


def test_stripe_error_becomes_gateway_error(gw, monkeypatch):
    def boom(**kwargs):
        raise stripe.StripeError("Your card was declined.")
    monkeypatch.setattr(stripe.PaymentIntent, "create", boom)

    with pytest.raises(GatewayError) as exc:
        gw.create_payment_intent(amount=100, currency="usd", metadata={})
    assert exc.value.status_code == 502


def test_retrieve_payment_intent_reads_expanded_latest_charge(gw, monkeypatch):
    intent = SimpleNamespace(
        id="pi_1", client_secret="s", status="succeeded", amount=2550, latest_charge=SimpleNamespace(id="ch_9"),
    )
    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", MagicMock(return_value=intent))
    assert gw.retrieve_payment_intent("pi_1").latest_charge == "ch_9"


def test_create_refund_uses_idempotency_key(gw, monkeypatch):
    fake_refund = MagicMock(return_value={"id": "re_1", "amount": 2550, "status": "succeeded"})
    monkeypatch.setattr(stripe.Refund, "create", fake_refund)

    refund = gw.create_refund(charge_id="ch_1", amount=2550, idempotency_key="refund-o1")

    assert (refund.id, refund.amount, refund.status) == ("re_1", 2550, "succeeded")
    kwargs = fake_refund.call_args.kwargs
    assert kwargs["charge"] == "ch_1"
    assert kwargs["idempotency_key"] == "refund-o1"
    assert kwargs["api_key"] == "sk_test_123"


def test_construct_event_returns_plain_dict(gw, monkeypatch):
    payload = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}}).encode()
    fake_construct = MagicMock(return_value=object())
    monkeypatch.setattr(stripe.Webhook, "construct_event", fake_construct)

    event = gw.construct_event(payload, "t=1,v1=abc")

    assert event["type"] == "payment_intent.succeeded"
    fake_construct.assert_called_once_with(payload, "t=1,v1=abc", "whsec_test")


def test_construct_event_invalid_signature(gw, monkeypatch):
    def bad(payload, sig, secret):
        raise stripe.SignatureVerificationError("No signatures found", sig)
    monkeypatch.setattr(stripe.Webhook, "construct_event", bad)

    with pytest.raises(SignatureVerificationError) as exc:
        gw.construct_event(b"{}", "t=1,v1=bad")
    assert exc.value.status_code == 400


def test_construct_event_missing_signature(gw):
    with pytest.raises(SignatureVerificationError):
        gw.construct_event(b"{}", None)


def test_construct_event_bad_payload(gw, monkeypatch):
    def bad(payload, sig, secret):
        raise ValueError("Invalid payload")
    monkeypatch.setattr(stripe.Webhook, "construct_event", bad)
    with pytest.raises(ValidationError):
        gw.construct_event(b"not json", "t=1,v1=abc")


def test_construct_event_without_secret_is_unavailable():
    with pytest.raises(GatewayUnavailableError):
        StripeGateway("sk_test_123", "").construct_event(b"{}", "t=1,v1=abc")
