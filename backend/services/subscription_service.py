"""
Subscription Service — checkout, activation and tracking.

Lifecycle:
    pending    → created at checkout, waiting for Stripe
    active     → payment confirmed by webhook; delivery orders generated once
    completed  → every scheduled meal delivered
    cancelled  → cancel-all left no upcoming orders
"""
import logging
import secrets
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Subscription, SubscriptionOrder
from domain.constants import ORDER_ID_ALPHABET, ORDER_ID_LENGTH, ORDER_ID_PREFIX
from domain.enums import MealType, OrderStatus, RefundStatus, SubscriptionStatus, Weekday
from domain.errors import NotFoundError, ValidationError
from services import stripe_service
from services.refund_service import is_cancellable, is_refund_eligible, to_decimal
from services.schedule_service import SelectedDay, generate_delivery_slots, unique_selected_days
from utils.timeutils import utc_now

logger = logging.getLogger(__name__)


def generate_order_id() -> str:
    """Public order id, e.g. "RI-7K2Q9XAB"."""
    suffix = "".join(secrets.choice(ORDER_ID_ALPHABET) for _ in range(ORDER_ID_LENGTH))
    return f"{ORDER_ID_PREFIX}{suffix}"


def normalize_selected_days(entries: Iterable[dict]) -> list[SelectedDay]:
    """
    Flatten checkout entries into unique (day, meal type) pairs.

    Accepts {"day": "Monday", "mealType": "lunch"} and
    {"day": "Monday", "meals": ["lunch", "dinner"]}; entries without a day or
    meal are skipped.

    Raises:
        ValidationError on an unknown weekday or meal type
    """
    pairs = []
    for entry in entries:
        day = entry.get("day")
        if not day:
            continue
        meals = entry.get("meals") or ([entry["mealType"]] if entry.get("mealType") else [])
        for meal in meals:
            try:
                pairs.append(SelectedDay(day=Weekday(day), meal_type=MealType(meal)))
            except ValueError:
                raise ValidationError(
                    f"Unsupported delivery slot {day}/{meal}. "
                    "Deliveries run Monday–Friday, lunch or dinner.",
                    field="selectedDays",
                )
    return unique_selected_days(pairs)


def quote(selected_days: list[SelectedDay], weeks: int, meal_price) -> dict:
    """Meal count and amount due for a plan."""
    total_meals = len(selected_days) * weeks
    total_amount = to_decimal(meal_price) * total_meals
    return {"total_meals": total_meals, "total_amount": total_amount}


async def get_by_order_id(db: AsyncSession, order_id: str) -> Optional[Subscription]:
    res = await db.execute(select(Subscription).where(Subscription.order_id == order_id))
    return res.scalar_one_or_none()


async def create_subscription(
    db: AsyncSession,
    *,
    customer_name: str,
    customer_email: str,
    customer_phone: str,
    customer_address: str,
    selected_days: list[SelectedDay],
    weeks: int,
    meal_price,
    base_url: str,
) -> dict:
    """
    Create a pending subscription and its Stripe Checkout session.

    Returns:
        dict: {subscription, checkout_url}
    """
    if not selected_days:
        raise ValidationError("At least one delivery day is required", field="selectedDays")
    if weeks < 1:
        raise ValidationError("Must be at least 1", field="weeks")

    totals = quote(selected_days, weeks, meal_price)
    order_id = generate_order_id()
    base_url = base_url.rstrip("/")

    session = await stripe_service.create_checkout_session(
        order_id=order_id,
        customer_email=customer_email,
        customer_name=customer_name,
        amount=totals["total_amount"],
        success_url=f"{base_url}/subscribe/success?order_id={order_id}&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base_url}/subscribe",
    )

    subscription = Subscription(
        order_id=order_id,
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=customer_phone,
        customer_address=customer_address,
        selected_days=[d.to_dict() for d in selected_days],
        num_weeks=weeks,
        total_meals=totals["total_meals"],
        total_amount=float(totals["total_amount"]),
        stripe_session_id=session["id"],
        status=SubscriptionStatus.PENDING.value,
    )
    db.add(subscription)
    await db.flush()

    logger.info(
        f"Subscription {order_id} created: {totals['total_meals']} meals "
        f"over {weeks} week(s), amount {totals['total_amount']}"
    )
    return {"subscription": subscription, "checkout_url": session["url"]}


async def activate_subscription(
    db: AsyncSession,
    *,
    order_id: str,
    payment_intent_id: Optional[str],
    meal_price,
    now: Optional[datetime] = None,
) -> dict:
    """
    Mark a paid subscription active and persist its delivery schedule.

    Idempotent: Stripe retries webhooks, and a subscription that is already
    past "pending" keeps its existing orders. The pending → active move is a
    conditional UPDATE, so of two overlapping deliveries only the one that
    wins the claim generates the schedule.

    Returns:
        dict: {subscription, orders_created}
    """
    subscription = await get_by_order_id(db, order_id)
    if not subscription:
        raise NotFoundError("Subscription", order_id)

    now = now or utc_now()
    claim = await db.execute(
        update(Subscription)
        .where(
            Subscription.id == subscription.id,
            Subscription.status == SubscriptionStatus.PENDING.value,
        )
        .values(
            status=SubscriptionStatus.ACTIVE.value,
            stripe_payment_intent_id=payment_intent_id,
            activated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(subscription)
    if claim.rowcount == 0:
        logger.info(f"Subscription {order_id} already {subscription.status}; skipping activation")
        return {"subscription": subscription, "orders_created": 0}

    selected = [SelectedDay.from_dict(d) for d in subscription.selected_days]
    slots = generate_delivery_slots(selected, subscription.num_weeks, now=now)

    price = float(to_decimal(meal_price))
    for slot in slots:
        db.add(
            SubscriptionOrder(
                subscription_id=subscription.id,
                order_id=subscription.order_id,
                delivery_date=slot.delivery_at,
                day=slot.day.value,
                meal_type=slot.meal_type.value,
                meal_price=price,
                status=OrderStatus.UPCOMING.value,
                refund_status=RefundStatus.NONE.value,
            )
        )

    await db.flush()

    logger.info(f"✅ Subscription {order_id} activated with {len(slots)} deliveries")
    return {"subscription": subscription, "orders_created": len(slots)}


async def handle_webhook_event(db: AsyncSession, event: dict, *, meal_price) -> dict:
    """Route a verified Stripe event. Only checkout.session.completed is acted on."""
    event_type = event.get("type")
    if event_type != "checkout.session.completed":
        logger.debug(f"Stripe webhook ignored: {event_type}")
        return {"status": "ignored", "type": event_type}

    session = (event.get("data") or {}).get("object") or {}
    order_id = (session.get("metadata") or {}).get("order_id")
    if not order_id:
        logger.error("No order_id in checkout session metadata")
        raise ValidationError("Missing order_id in metadata")

    result = await activate_subscription(
        db,
        order_id=order_id,
        payment_intent_id=session.get("payment_intent"),
        meal_price=meal_price,
    )
    return {"status": "activated", "ordersCreated": result["orders_created"]}


def serialize_subscription(sub: Subscription) -> dict:
    return {
        "id": sub.id,
        "orderId": sub.order_id,
        "customerName": sub.customer_name,
        "customerEmail": sub.customer_email,
        "customerPhone": sub.customer_phone,
        "customerAddress": sub.customer_address,
        "selectedDays": sub.selected_days,
        "numWeeks": sub.num_weeks,
        "totalMeals": sub.total_meals,
        "totalAmount": sub.total_amount,
        "status": sub.status,
        "stripePaymentIntentId": sub.stripe_payment_intent_id,
        "createdAt": sub.created_at.isoformat() if sub.created_at else None,
    }


def serialize_order(order: SubscriptionOrder, now: Optional[datetime] = None) -> dict:
    data = {
        "id": order.id,
        "subscriptionId": order.subscription_id,
        "orderId": order.order_id,
        "deliveryDate": order.delivery_date.isoformat(),
        "day": order.day,
        "mealType": order.meal_type,
        "mealPrice": order.meal_price,
        "status": order.status,
        "refundStatus": order.refund_status,
        "stripeRefundId": order.stripe_refund_id,
        "cancelledAt": order.cancelled_at.isoformat() if order.cancelled_at else None,
        "deliveredAt": order.delivered_at.isoformat() if order.delivered_at else None,
    }
    if now is not None:
        upcoming = order.status == OrderStatus.UPCOMING.value
        data["cancellable"] = upcoming and is_cancellable(order.delivery_date, now)
        data["refundEligible"] = upcoming and is_refund_eligible(order.delivery_date, now)
    return data


async def get_tracking(db: AsyncSession, order_id: str, now: Optional[datetime] = None) -> dict:
    """Subscription plus its orders (by delivery time) with cancel/refund flags."""
    subscription = await get_by_order_id(db, order_id)
    if not subscription:
        raise NotFoundError("Subscription", order_id)

    res = await db.execute(
        select(SubscriptionOrder)
        .where(SubscriptionOrder.order_id == order_id)
        .order_by(SubscriptionOrder.delivery_date.asc())
    )
    orders = res.scalars().all()
    now = now or utc_now()
    return {
        "subscription": serialize_subscription(subscription),
        "orders": [serialize_order(o, now=now) for o in orders],
    }


def money(value: Decimal) -> float:
    """Decimal amount → float rounded to cents for JSON payloads."""
    return float(to_decimal(value).quantize(Decimal("0.01")))
