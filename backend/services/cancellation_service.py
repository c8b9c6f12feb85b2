"""
Cancellation Service — applies refund decisions to stored orders.

Flow for one request:
    1. Load the subscription and the upcoming orders to cancel
    2. plan_cancellation() decides refund / no_refund per order
    3. Each order is claimed (upcoming → cancelled) with a conditional UPDATE
       before anything else happens to it; an order another request already
       claimed is skipped
    4. Refunds of the price stored on the order are issued one at a time; a
       Stripe failure is logged and the batch continues
    5. An audit row is written to cancellation_requests
    6. Cancel-all with no upcoming orders left cancels the subscription

Refund status recorded per order:
    refunded       Stripe accepted the refund
    no_refund      inside the 48-hour window
    refund_failed  eligible, but Stripe rejected the refund (not retried)
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import CancellationRequest, Subscription, SubscriptionOrder
from domain.enums import OrderStatus, RefundStatus, SubscriptionStatus
from domain.errors import NotFoundError, PaymentProviderError, ValidationError
from services import stripe_service, subscription_service
from services.refund_service import OrderSnapshot, plan_cancellation, to_decimal
from utils.timeutils import utc_now

logger = logging.getLogger(__name__)


async def _load_orders(
    db: AsyncSession,
    *,
    order_id: str,
    order_ids: Optional[Sequence[int]],
    cancel_all: bool,
) -> list[SubscriptionOrder]:
    query = select(SubscriptionOrder).where(
        SubscriptionOrder.order_id == order_id,
        SubscriptionOrder.status == OrderStatus.UPCOMING.value,
    )
    if not cancel_all:
        query = query.where(SubscriptionOrder.id.in_(list(order_ids)))
    res = await db.execute(query.order_by(SubscriptionOrder.delivery_date.asc()))
    return list(res.scalars().all())


async def _claim_order(db: AsyncSession, order: SubscriptionOrder, now: datetime) -> bool:
    """Atomically move one order from upcoming to cancelled. False if it was already taken."""
    claim = await db.execute(
        update(SubscriptionOrder)
        .where(
            SubscriptionOrder.id == order.id,
            SubscriptionOrder.status == OrderStatus.UPCOMING.value,
        )
        .values(status=OrderStatus.CANCELLED.value, cancelled_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(order)
    return claim.rowcount == 1


async def count_upcoming(db: AsyncSession, order_id: str) -> int:
    res = await db.execute(
        select(func.count(SubscriptionOrder.id)).where(
            SubscriptionOrder.order_id == order_id,
            SubscriptionOrder.status == OrderStatus.UPCOMING.value,
        )
    )
    return res.scalar_one()


async def cancel_orders(
    db: AsyncSession,
    *,
    order_id: str,
    meal_price,
    order_ids: Optional[Sequence[int]] = None,
    cancel_all: bool = False,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Cancel selected (or all) upcoming orders of a subscription.

    Args:
        order_id: public subscription order id
        meal_price: configured price per meal, used for the plan; each refund
            is the meal_price stored on its order at activation
        order_ids: subscription_orders ids to cancel (ignored when cancel_all)
        cancel_all: cancel every upcoming order
        reason: free-text reason stored on the audit row
        now: decision time; defaults to current UTC

    Returns:
        dict: {refunded_count, no_refund_count, refund_failed_count,
               total_refund, cancelled_order_ids, skipped_order_ids}
    """
    if not cancel_all and not order_ids:
        raise ValidationError("Must provide orderIds or set cancelAll to true")

    subscription = await subscription_service.get_by_order_id(db, order_id)
    if not subscription:
        raise NotFoundError("Subscription", order_id)

    orders = await _load_orders(db, order_id=order_id, order_ids=order_ids, cancel_all=cancel_all)
    if not orders:
        raise NotFoundError("Upcoming orders", order_id)

    now = now or utc_now()
    by_id = {o.id: o for o in orders}
    plan = plan_cancellation(
        [OrderSnapshot(order_id=o.id, delivery_at=o.delivery_date) for o in orders],
        now=now,
        meal_price=meal_price,
    )

    refunded_count = 0
    no_refund_count = 0
    failed_count = 0
    total_refund = Decimal("0")
    cancelled_ids = []

    for decision in plan.decisions:
        order = by_id[decision.order_id]
        if not await _claim_order(db, order, now):
            logger.info(f"Order {order.id} ({order_id}) already claimed by another cancellation")
            continue

        refund_id = None
        if decision.is_refund:
            amount = to_decimal(order.meal_price)
            try:
                refund_id = await stripe_service.create_refund(
                    payment_intent_id=subscription.stripe_payment_intent_id,
                    amount=amount,
                    idempotency_key=f"refund-order-{order.id}",
                )
                refund_status = RefundStatus.REFUNDED
                refunded_count += 1
                total_refund += amount
            except PaymentProviderError as e:
                logger.error(
                    f"❌ Refund failed for order {order.id} ({order_id}): {e.message}"
                )
                refund_status = RefundStatus.REFUND_FAILED
                failed_count += 1
        else:
            refund_status = RefundStatus.NO_REFUND
            no_refund_count += 1

        order.refund_status = refund_status.value
        order.stripe_refund_id = refund_id
        cancelled_ids.append(order.id)

    if plan.decisions and not cancelled_ids:
        raise NotFoundError("Upcoming orders", order_id)

    if plan.skipped_past:
        logger.info(f"Skipped {len(plan.skipped_past)} past order(s) for {order_id}")

    db.add(
        CancellationRequest(
            subscription_id=subscription.id,
            order_id=order_id,
            cancelled_order_ids=cancelled_ids,
            total_refund_amount=float(total_refund),
            refund_eligible_count=refunded_count,
            no_refund_count=no_refund_count,
            refund_failed_count=failed_count,
            reason=reason or ("Cancel all upcoming orders" if cancel_all else "Cancel selected orders"),
            status="processed",
        )
    )
    await db.flush()

    if cancel_all and await count_upcoming(db, order_id) == 0:
        subscription.status = SubscriptionStatus.CANCELLED.value
        logger.info(f"Subscription {order_id} cancelled (no upcoming orders left)")

    await db.flush()

    logger.info(
        f"Cancellation for {order_id}: {len(cancelled_ids)} cancelled, "
        f"{refunded_count} refunded, {no_refund_count} no refund, "
        f"{failed_count} refund failures, total {total_refund}"
    )

    return {
        "refunded_count": refunded_count,
        "no_refund_count": no_refund_count,
        "refund_failed_count": failed_count,
        "total_refund": total_refund,
        "cancelled_order_ids": cancelled_ids,
        "skipped_order_ids": list(plan.skipped_past),
    }


async def list_cancellations(db: AsyncSession, *, limit: int = 50, offset: int = 0) -> tuple[list[dict], int]:
    """Audit rows, newest first, with the customer attached."""
    total = (await db.execute(select(func.count(CancellationRequest.id)))).scalar_one()
    res = await db.execute(
        select(CancellationRequest)
        .order_by(CancellationRequest.created_at.desc(), CancellationRequest.id.desc())
        .limit(limit)
        .offset(offset)
    )
    rows = []
    for c in res.scalars().all():
        sub = await db.get(Subscription, c.subscription_id)
        rows.append(
            {
                "id": c.id,
                "orderId": c.order_id,
                "cancelledOrderIds": c.cancelled_order_ids,
                "totalRefundAmount": c.total_refund_amount,
                "refundEligibleCount": c.refund_eligible_count,
                "noRefundCount": c.no_refund_count,
                "refundFailedCount": c.refund_failed_count,
                "reason": c.reason,
                "status": c.status,
                "createdAt": c.created_at.isoformat() if c.created_at else None,
                "customerName": sub.customer_name if sub else None,
                "customerEmail": sub.customer_email if sub else None,
            }
        )
    return rows, total
