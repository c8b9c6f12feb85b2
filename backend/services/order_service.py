"""
Order Service — admin view of scheduled deliveries.

Status transitions are forward-only:
    upcoming → delivered   (kitchen marks a delivery done)
    upcoming → cancelled   (admin cancel, no refund; customer cancellations go
                            through cancellation_service)
delivered and cancelled are terminal.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Subscription, SubscriptionOrder
from domain.enums import OrderStatus, RefundStatus, SubscriptionStatus
from domain.errors import ConflictError, NotFoundError, ValidationError
from services.subscription_service import serialize_order, serialize_subscription
from utils.timeutils import utc_now

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    OrderStatus.UPCOMING.value: {OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value},
    OrderStatus.DELIVERED.value: set(),
    OrderStatus.CANCELLED.value: set(),
}


def _with_customer(order: SubscriptionOrder, sub: Optional[Subscription]) -> dict:
    data = serialize_order(order)
    data["customer"] = (
        {
            "name": sub.customer_name,
            "email": sub.customer_email,
            "phone": sub.customer_phone,
            "address": sub.customer_address,
        }
        if sub
        else None
    )
    return data


async def list_orders(
    db: AsyncSession,
    *,
    status: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[dict], int]:
    """Orders with customer details, latest delivery first. `end` is exclusive."""
    filters = []
    if status:
        filters.append(SubscriptionOrder.status == status)
    if start:
        filters.append(SubscriptionOrder.delivery_date >= start)
    if end:
        filters.append(SubscriptionOrder.delivery_date < end)

    total = (
        await db.execute(select(func.count(SubscriptionOrder.id)).where(*filters))
    ).scalar_one()

    res = await db.execute(
        select(SubscriptionOrder, Subscription)
        .join(Subscription, SubscriptionOrder.subscription_id == Subscription.id)
        .where(*filters)
        .order_by(SubscriptionOrder.delivery_date.desc(), SubscriptionOrder.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return [_with_customer(order, sub) for order, sub in res.all()], total


async def update_order_status(
    db: AsyncSession,
    *,
    order_pk: int,
    status: str,
    now: Optional[datetime] = None,
) -> SubscriptionOrder:
    """
    Move an order forward. Delivering the last upcoming order of an active
    subscription completes the subscription.
    """
    if status not in ALLOWED_TRANSITIONS:
        raise ValidationError(f"Unknown status '{status}'", field="status")

    order = await db.get(SubscriptionOrder, order_pk)
    if not order:
        raise NotFoundError("Order", str(order_pk))

    if status == order.status:
        return order
    if status not in ALLOWED_TRANSITIONS[order.status]:
        raise ConflictError(
            f"Order {order_pk} is {order.status}; cannot change to {status}",
            details={"current": order.status, "requested": status},
        )

    now = now or utc_now()
    order.status = status
    if status == OrderStatus.DELIVERED.value:
        order.delivered_at = now
    else:
        order.cancelled_at = now
        order.refund_status = RefundStatus.NO_REFUND.value
    await db.flush()

    logger.info(f"Order {order_pk} ({order.order_id}) → {status}")

    if status == OrderStatus.DELIVERED.value:
        await _complete_if_finished(db, order.subscription_id)
    return order


async def _complete_if_finished(db: AsyncSession, subscription_id: int) -> None:
    sub = await db.get(Subscription, subscription_id)
    if not sub or sub.status != SubscriptionStatus.ACTIVE.value:
        return
    remaining = (
        await db.execute(
            select(func.count(SubscriptionOrder.id)).where(
                SubscriptionOrder.subscription_id == subscription_id,
                SubscriptionOrder.status == OrderStatus.UPCOMING.value,
            )
        )
    ).scalar_one()
    if remaining == 0:
        sub.status = SubscriptionStatus.COMPLETED.value
        await db.flush()
        logger.info(f"Subscription {sub.order_id} completed")


async def list_subscriptions(
    db: AsyncSession,
    *,
    status: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[dict], int]:
    """Subscriptions, newest first; `search` matches email or order id (case-insensitive)."""
    filters = []
    if status:
        filters.append(Subscription.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                Subscription.customer_email.ilike(pattern),
                Subscription.order_id.ilike(pattern),
            )
        )

    total = (await db.execute(select(func.count(Subscription.id)).where(*filters))).scalar_one()
    res = await db.execute(
        select(Subscription)
        .where(*filters)
        .order_by(Subscription.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return [serialize_subscription(s) for s in res.scalars().all()], total
