from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from chefhub.errors import UpstreamFailure
from chefhub.main import app
from chefhub.services.payments import PaymentGateway, get_payment_gateway, to_minor_units


def test_to_minor_units():
    assert to_minor_units(12.5) == 1250
    assert to_minor_units(19.99) == 1999
    assert to_minor_units(1) == 100


def test_mock_intent_endpoint(client, customer_headers):
    resp = client.post("/api/payment/create-intent", json={"amount": 24.5, "currency": "USD"}, headers=customer_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["amount"] == 2450
    assert data["currency"] == "usd"
    assert data["payment_intent_id"].startswith("pi_mock_")
    assert data["client_secret"].startswith(data["payment_intent_id"])


def test_amount_below_minimum(client, customer_headers):
    resp = client.post("/api/payment/create-intent", json={"amount": 0.5, "currency": "usd"}, headers=customer_headers)
    assert resp.status_code == 422
    assert "amount" in resp.json()["errors"]


def test_requires_authentication(client):
    assert client.post("/api/payment/create-intent", json={"amount": 5, "currency": "usd"}).status_code == 401


def test_stripe_mode_requires_key():
    with pytest.raises(RuntimeError):
        PaymentGateway(mode="stripe", secret_key=None)


def test_stripe_intent_created_with_minor_units():
    gateway = PaymentGateway(mode="stripe", secret_key="sk_test_123")
    fake_intent = SimpleNamespace(id="pi_123", client_secret="pi_123_secret_abc")

    with patch("chefhub.services.payments.stripe.PaymentIntent.create", return_value=fake_intent) as create:
        result = gateway.create_intent(10.25, "EUR", user_id=7)

    kwargs = create.call_args.kwargs
    assert kwargs["amount"] == 1025
    assert kwargs["currency"] == "eur"
    assert kwargs["api_key"] == "sk_test_123"
    assert kwargs["metadata"] == {"user_id": "7"}
    assert result == {
        "client_secret": "pi_123_secret_abc",
        "payment_intent_id": "pi_123",
        "amount": 1025,
        "currency": "eur",
    }


def test_stripe_error_is_upstream_failure():
    gateway = PaymentGateway(mode="stripe", secret_key="sk_test_123")
    error = stripe.StripeError("card declined")

    with patch("chefhub.services.payments.stripe.PaymentIntent.create", side_effect=error):
        with pytest.raises(UpstreamFailure) as exc:
            gateway.create_intent(10, "usd", user_id=1)

    assert "Stripe payment error" in exc.value.message


def test_stripe_error_renders_500(client, customer_headers):
    gateway = PaymentGateway(mode="stripe", secret_key="sk_test_123")
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    with patch("chefhub.services.payments.stripe.PaymentIntent.create", side_effect=stripe.StripeError("boom")):
        resp = client.post("/api/payment/create-intent", json={"amount": 5, "currency": "usd"}, headers=customer_headers)

    assert resp.status_code == 500
    assert resp.json()["success"] is False
    assert resp.json()["message"].startswith("Stripe payment error")
