"""
Stripe Service — checkout sessions, refunds and webhook verification.

Talks to the Stripe REST API directly over httpx (form-encoded requests,
secret key as basic-auth username).

Simulation mode:
    - No network calls; checkout returns the success URL directly
    - Refunds return a synthetic "re_sim_..." id
    - Unsigned webhook payloads are accepted
"""
import hashlib
import hmac
import json
import logging
import time
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import httpx

from config import settings
from domain.errors import PaymentProviderError, ValidationError

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


def to_minor_units(amount) -> int:
    """Convert a currency amount (e.g. 10.5) to cents (1050)."""
    cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def _auth() -> tuple[str, str]:
    if not settings.stripe_secret_key:
        raise PaymentProviderError("Stripe is not configured (STRIPE_SECRET_KEY missing)")
    return (settings.stripe_secret_key, "")


async def _post(path: str, data: dict, idempotency_key: Optional[str] = None) -> dict:
    """POST a form-encoded request to Stripe and return the decoded JSON body."""
    headers = {}
    if idempotency_key:
        headers["Idempotency-Key"] = idempotency_key
    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{settings.stripe_api_base}{path}",
                data=data,
                auth=_auth(),
                headers=headers,
            )
    except httpx.HTTPError as e:
        logger.error(f"Stripe request to {path} failed: {e}")
        raise PaymentProviderError("Payment provider unreachable") from e

    if response.status_code >= 400:
        try:
            error = response.json().get("error", {})
        except ValueError:
            error = {}
        logger.error(
            f"Stripe {path} returned {response.status_code}: "
            f"{error.get('type', 'unknown')} {error.get('message', '')}"
        )
        raise PaymentProviderError(
            error.get("message") or "Payment provider rejected the request",
            details={"status": response.status_code, "type": error.get("type")},
        )
    return response.json()


# ════════════════════════════════════════════════════════════════════
# Checkout
# ════════════════════════════════════════════════════════════════════


async def create_checkout_session(
    *,
    order_id: str,
    customer_email: str,
    customer_name: str,
    amount,
    success_url: str,
    cancel_url: str,
) -> dict:
    """
    Create a one-off payment Checkout Session for a subscription.

    Returns:
        dict: {id, url}
    """
    if settings.simulation_mode:
        session_id = f"cs_sim_{uuid.uuid4().hex[:24]}"
        logger.info(f"SIMULATION MODE: checkout session {session_id} for {order_id}")
        return {
            "id": session_id,
            "url": success_url.replace("{CHECKOUT_SESSION_ID}", session_id),
        }

    data = {
        "mode": "payment",
        "line_items[0][price_data][currency]": settings.currency,
        "line_items[0][price_data][product_data][name]": settings.checkout_product_name,
        "line_items[0][price_data][unit_amount]": str(to_minor_units(amount)),
        "line_items[0][quantity]": "1",
        "success_url": success_url,
        "cancel_url": cancel_url,
        "customer_email": customer_email,
        "metadata[order_id]": order_id,
        "metadata[customer_email]": customer_email,
        "metadata[customer_name]": customer_name,
    }
    session = await _post("/checkout/sessions", data, idempotency_key=f"checkout-{order_id}")
    logger.info(f"💳 Checkout session created: {session['id']} for {order_id}")
    return {"id": session["id"], "url": session.get("url")}


# ════════════════════════════════════════════════════════════════════
# Refunds
# ════════════════════════════════════════════════════════════════════


async def create_refund(*, payment_intent_id: Optional[str], amount, idempotency_key: Optional[str] = None) -> str:
    """
    Refund `amount` against a captured payment intent.

    Returns:
        The Stripe refund id

    Raises:
        PaymentProviderError if there is nothing to refund against or Stripe fails
    """
    if settings.simulation_mode:
        refund_id = f"re_sim_{uuid.uuid4().hex[:24]}"
        logger.info(f"SIMULATION MODE: refund {refund_id} of {amount}")
        return refund_id

    if not payment_intent_id:
        raise PaymentProviderError("No captured payment recorded for this subscription")

    refund = await _post(
        "/refunds",
        {
            "payment_intent": payment_intent_id,
            "amount": str(to_minor_units(amount)),
        },
        idempotency_key=idempotency_key,
    )
    return refund["id"]


# ════════════════════════════════════════════════════════════════════
# Webhook Verification
# ════════════════════════════════════════════════════════════════════


def compute_signature(payload: bytes, timestamp: int, secret: str) -> str:
    """HMAC-SHA256 over "{timestamp}.{payload}", hex encoded (Stripe v1 scheme)."""
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    payload: bytes,
    signature_header: Optional[str],
    secret: str,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> bool:
    """
    Verify a Stripe-Signature header ("t=<unix>,v1=<hex>[,v1=<hex>...]").

    Fails closed: a missing secret or header never verifies.
    """
    if not secret or not signature_header:
        return False

    timestamp = None
    candidates = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                return False
        elif key == "v1":
            candidates.append(value)

    if timestamp is None or not candidates:
        return False

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance:
        logger.warning("Stripe webhook signature timestamp outside tolerance")
        return False

    expected = compute_signature(payload, timestamp, secret)
    return any(hmac.compare_digest(expected, sig) for sig in candidates)


def parse_webhook_event(payload: bytes, signature_header: Optional[str]) -> dict:
    """
    Verify (when a secret is configured) and decode a webhook payload.

    Raises:
        ValidationError if the signature is invalid or the body is not JSON
    """
    if settings.stripe_webhook_secret:
        if not verify_webhook_signature(payload, signature_header, settings.stripe_webhook_secret):
            logger.warning("Webhook signature verification failed")
            raise ValidationError("Webhook signature verification failed")
    elif not settings.simulation_mode:
        logger.error(
            "STRIPE_WEBHOOK_SECRET not configured — rejecting webhook. "
            "Set STRIPE_WEBHOOK_SECRET to accept Stripe webhooks."
        )
        raise ValidationError("Webhook signature verification failed")

    try:
        event = json.loads(payload)
    except ValueError:
        raise ValidationError("Webhook body is not valid JSON")
    if not isinstance(event, dict):
        raise ValidationError("Webhook body is not a JSON object")
    return event
