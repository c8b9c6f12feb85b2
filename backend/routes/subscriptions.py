"""
Subscription checkout and payment webhook endpoints.

POST /subscribe  creates a pending subscription and a Stripe Checkout session
POST /webhook    Stripe callback; checkout.session.completed activates the
                 subscription and writes its delivery schedule
"""
import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import meal_price, public_base_url
from middleware.rate_limit import rate_limit
from models import SubscribeRequest, SubscribeResponse
from services import stripe_service, subscription_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subscriptions"])


# ── POST /subscribe ────────────────────────────────────────────────

@router.post("/subscribe", response_model=SubscribeResponse)
async def subscribe(
    body: SubscribeRequest,
    base_url: str = Depends(public_base_url),
    price: Decimal = Depends(meal_price),
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=10, window_seconds=60)),
):
    """
    Start a subscription.

    Flattens the selected days into (day, meal) pairs, prices the plan and
    returns the Checkout URL the customer is redirected to. Rate limited to
    10/min per IP.
    """
    selected = subscription_service.normalize_selected_days(
        [entry.model_dump(by_alias=True, exclude_none=True) for entry in body.selected_days]
    )
    customer = body.customer

    result = await subscription_service.create_subscription(
        db,
        customer_name=customer.name,
        customer_email=customer.email,
        customer_phone=customer.phone,
        customer_address=customer.address,
        selected_days=selected,
        weeks=body.weeks,
        meal_price=price,
        base_url=base_url,
    )
    await db.commit()

    return SubscribeResponse(
        url=result["checkout_url"],
        order_id=result["subscription"].order_id,
    )


# ── POST /webhook ──────────────────────────────────────────────────

@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    price: Decimal = Depends(meal_price),
    db: AsyncSession = Depends(get_db),
):
    """
    Stripe webhook receiver.

    The raw body is verified against Stripe-Signature before parsing.
    Redelivered events for an already active subscription are no-ops.
    """
    payload = await request.body()
    event = stripe_service.parse_webhook_event(payload, stripe_signature)

    result = await subscription_service.handle_webhook_event(db, event, meal_price=price)
    await db.commit()

    return {"received": True, **result}
