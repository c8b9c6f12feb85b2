"""
Tests for the Stripe integration.

Tests: webhook signature scheme, amount conversion, simulation mode,
error mapping for refunds.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from config import settings
from domain.errors import PaymentProviderError, ValidationError
from services import stripe_service
from services.stripe_service import (
    compute_signature,
    parse_webhook_event,
    to_minor_units,
    verify_webhook_signature,
)

SECRET = "whsec_test_secret"
PAYLOAD = json.dumps({"type": "checkout.session.completed"}).encode()


def _header(payload: bytes, timestamp: int, secret: str = SECRET) -> str:
    return f"t={timestamp},v1={compute_signature(payload, timestamp, secret)}"


@pytest.fixture
def live_stripe(monkeypatch):
    """Leave simulation mode with a fake key so requests go through httpx."""
    monkeypatch.setattr(settings, "simulation_mode", False)
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_123")


def _response(status_code: int, body: dict):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    return response


class TestWebhookSignature:

    @pytest.mark.unit
    def test_valid_signature(self):
        ts = 1_700_000_000
        assert verify_webhook_signature(PAYLOAD, _header(PAYLOAD, ts), SECRET, now=ts + 10) is True

    @pytest.mark.unit
    def test_tampered_payload_rejected(self):
        ts = 1_700_000_000
        header = _header(PAYLOAD, ts)
        assert verify_webhook_signature(PAYLOAD + b" ", header, SECRET, now=ts) is False

    @pytest.mark.unit
    def test_wrong_secret_rejected(self):
        ts = 1_700_000_000
        header = _header(PAYLOAD, ts, secret="whsec_other")
        assert verify_webhook_signature(PAYLOAD, header, SECRET, now=ts) is False

    @pytest.mark.unit
    def test_stale_timestamp_rejected(self):
        ts = 1_700_000_000
        assert verify_webhook_signature(PAYLOAD, _header(PAYLOAD, ts), SECRET, now=ts + 301) is False

    @pytest.mark.unit
    def test_any_matching_v1_accepted(self):
        """Stripe sends several v1 signatures while a secret is being rolled."""
        ts = 1_700_000_000
        good = compute_signature(PAYLOAD, ts, SECRET)
        header = f"t={ts},v1={'0' * 64},v1={good}"
        assert verify_webhook_signature(PAYLOAD, header, SECRET, now=ts) is True

    @pytest.mark.unit
    @pytest.mark.parametrize("header", [None, "", "v1=abc", "t=notanumber,v1=abc", "t=123"])
    def test_malformed_header_rejected(self, header):
        assert verify_webhook_signature(PAYLOAD, header, SECRET, now=123) is False

    @pytest.mark.unit
    def test_missing_secret_fails_closed(self):
        ts = 1_700_000_000
        assert verify_webhook_signature(PAYLOAD, _header(PAYLOAD, ts), "", now=ts) is False


class TestParseWebhookEvent:

    @pytest.mark.unit
    def test_unsigned_accepted_in_simulation(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", "")
        monkeypatch.setattr(settings, "simulation_mode", True)
        assert parse_webhook_event(PAYLOAD, None)["type"] == "checkout.session.completed"

    @pytest.mark.unit
    def test_unsigned_rejected_outside_simulation(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", "")
        monkeypatch.setattr(settings, "simulation_mode", False)
        with pytest.raises(ValidationError):
            parse_webhook_event(PAYLOAD, None)

    @pytest.mark.unit
    def test_bad_signature_rejected_when_secret_set(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", SECRET)
        with pytest.raises(ValidationError):
            parse_webhook_event(PAYLOAD, "t=1,v1=deadbeef")

    @pytest.mark.unit
    def test_non_object_body_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", "")
        monkeypatch.setattr(settings, "simulation_mode", True)
        with pytest.raises(ValidationError):
            parse_webhook_event(b"[1, 2]", None)


class TestAmounts:

    @pytest.mark.unit
    @pytest.mark.parametrize("amount,cents", [(10, 1000), (10.5, 1050), ("0.015", 2), (120.0, 12000)])
    def test_to_minor_units(self, amount, cents):
        assert to_minor_units(amount) == cents


class TestCheckoutAndRefunds:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_simulated_checkout_redirects_to_success_url(self, monkeypatch):
        monkeypatch.setattr(settings, "simulation_mode", True)
        session = await stripe_service.create_checkout_session(
            order_id="RI-ABCD1234",
            customer_email="a@example.com",
            customer_name="A",
            amount=40,
            success_url="http://test/subscribe/success?session_id={CHECKOUT_SESSION_ID}",
            cancel_url="http://test/subscribe",
        )
        assert session["id"].startswith("cs_sim_")
        assert session["url"] == f"http://test/subscribe/success?session_id={session['id']}"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_live_checkout_sends_cents_and_metadata(self, live_stripe):
        post = AsyncMock(return_value=_response(200, {"id": "cs_live_1", "url": "https://checkout.stripe.com/x"}))
        with patch("httpx.AsyncClient.post", post):
            session = await stripe_service.create_checkout_session(
                order_id="RI-ABCD1234",
                customer_email="a@example.com",
                customer_name="A",
                amount=40,
                success_url="http://test/ok",
                cancel_url="http://test/cancel",
            )
        assert session == {"id": "cs_live_1", "url": "https://checkout.stripe.com/x"}
        kwargs = post.call_args.kwargs
        assert kwargs["data"]["line_items[0][price_data][unit_amount]"] == "4000"
        assert kwargs["data"]["metadata[order_id]"] == "RI-ABCD1234"
        assert kwargs["headers"]["Idempotency-Key"] == "checkout-RI-ABCD1234"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_simulated_refund_returns_synthetic_id(self, monkeypatch):
        monkeypatch.setattr(settings, "simulation_mode", True)
        refund_id = await stripe_service.create_refund(payment_intent_id=None, amount=10)
        assert refund_id.startswith("re_sim_")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refund_without_payment_intent_fails(self, live_stripe):
        with pytest.raises(PaymentProviderError):
            await stripe_service.create_refund(payment_intent_id=None, amount=10)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_refund_error_mapped_to_provider_error(self, live_stripe):
        body = {"error": {"type": "invalid_request_error", "message": "Charge already refunded"}}
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_response(400, body))):
            with pytest.raises(PaymentProviderError) as exc_info:
                await stripe_service.create_refund(payment_intent_id="pi_1", amount=10)
        assert exc_info.value.status_code == 502
        assert "already refunded" in exc_info.value.message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_secret_key_is_provider_error(self, monkeypatch):
        monkeypatch.setattr(settings, "simulation_mode", False)
        monkeypatch.setattr(settings, "stripe_secret_key", "")
        with pytest.raises(PaymentProviderError):
            await stripe_service.create_refund(payment_intent_id="pi_1", amount=10)
