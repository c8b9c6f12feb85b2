"""
Report Service — dashboard counters, daily sales and revenue analytics.

Aggregation helpers are pure (they take already-loaded rows) so they can be
reused by the xlsx export; the async functions only fetch rows.

Money is summed as Decimal and converted to float at the edge.
"""
import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Subscription, SubscriptionOrder
from domain.constants import PAID_SUBSCRIPTION_STATUSES
from domain.enums import OrderStatus, RefundStatus, SubscriptionStatus
from services.refund_service import to_decimal
from utils.timeutils import utc_now

logger = logging.getLogger(__name__)

RECENT_ORDERS_LIMIT = 10


# ════════════════════════════════════════════════════════════════════
# Pure aggregation
# ════════════════════════════════════════════════════════════════════


def week_start(day: date) -> date:
    """Monday of the (UTC) week containing `day`."""
    return day - timedelta(days=day.weekday())


def is_paid(sub) -> bool:
    """A subscription counts as revenue once money was captured."""
    if not sub.total_amount or sub.total_amount <= 0:
        return False
    if sub.stripe_payment_intent_id:
        return True
    return sub.status in PAID_SUBSCRIPTION_STATUSES


def _bucket_rows(buckets: dict, label) -> list[dict]:
    return [
        {
            "key": key,
            "label": label(key),
            "revenue": float(value["revenue"]),
            "orders": value["orders"],
        }
        for key, value in sorted(buckets.items())
    ]


def aggregate_revenue(subscriptions: Iterable) -> dict:
    """
    Bucket paid subscriptions by week (Monday start), month and year of creation.

    Returns:
        dict: {weekly, monthly, yearly, totals: {revenue, orders, averageOrderValue}}
    """
    weekly: dict = {}
    monthly: dict = {}
    yearly: dict = {}
    total_revenue = Decimal("0")
    total_orders = 0

    for sub in subscriptions:
        if not is_paid(sub):
            continue
        created = sub.created_at
        amount = to_decimal(sub.total_amount)
        keys = (
            (weekly, week_start(created.date()).isoformat()),
            (monthly, f"{created.year:04d}-{created.month:02d}"),
            (yearly, f"{created.year:04d}"),
        )
        for buckets, key in keys:
            bucket = buckets.setdefault(key, {"revenue": Decimal("0"), "orders": 0})
            bucket["revenue"] += amount
            bucket["orders"] += 1
        total_revenue += amount
        total_orders += 1

    def week_label(key: str) -> str:
        d = date.fromisoformat(key)
        return f"{d:%b} {d.day}"

    def month_label(key: str) -> str:
        return f"{date.fromisoformat(key + '-01'):%b %Y}"

    average = total_revenue / total_orders if total_orders else Decimal("0")
    return {
        "weekly": _bucket_rows(weekly, week_label),
        "monthly": _bucket_rows(monthly, month_label),
        "yearly": _bucket_rows(yearly, lambda key: key),
        "totals": {
            "revenue": float(total_revenue),
            "orders": total_orders,
            "averageOrderValue": float(average.quantize(Decimal("0.01"))),
        },
    }


def aggregate_sales(orders: Iterable) -> dict:
    """
    Daily breakdown of scheduled orders by delivery date.

    Revenue counts delivered meals; refunds count meals refunded through
    Stripe; net = revenue - refunds.
    """
    daily: "OrderedDict[str, dict]" = OrderedDict()
    total_revenue = Decimal("0")
    total_refunds = Decimal("0")
    total_orders = 0

    for order in sorted(orders, key=lambda o: o.delivery_date):
        key = order.delivery_date.date().isoformat()
        day = daily.setdefault(
            key,
            {
                "date": key,
                "revenue": Decimal("0"),
                "refunds": Decimal("0"),
                "orderCount": 0,
                "deliveredCount": 0,
                "cancelledCount": 0,
            },
        )
        price = to_decimal(order.meal_price or 0)
        day["orderCount"] += 1
        total_orders += 1

        if order.status == OrderStatus.DELIVERED.value:
            day["revenue"] += price
            day["deliveredCount"] += 1
            total_revenue += price
        elif order.status == OrderStatus.CANCELLED.value:
            day["cancelledCount"] += 1

        if order.refund_status == RefundStatus.REFUNDED.value:
            day["refunds"] += price
            total_refunds += price

    breakdown = []
    for day in daily.values():
        breakdown.append(
            {
                **day,
                "revenue": float(day["revenue"]),
                "refunds": float(day["refunds"]),
                "net": float(day["revenue"] - day["refunds"]),
            }
        )

    return {
        "daily": breakdown,
        "totals": {
            "revenue": float(total_revenue),
            "refunds": float(total_refunds),
            "net": float(total_revenue - total_refunds),
            "totalOrders": total_orders,
        },
    }


# ════════════════════════════════════════════════════════════════════
# Queries
# ════════════════════════════════════════════════════════════════════


async def fetch_orders_between(
    db: AsyncSession,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> list[SubscriptionOrder]:
    """Orders by delivery time ascending; `end` is exclusive."""
    query = select(SubscriptionOrder)
    if start:
        query = query.where(SubscriptionOrder.delivery_date >= start)
    if end:
        query = query.where(SubscriptionOrder.delivery_date < end)
    res = await db.execute(query.order_by(SubscriptionOrder.delivery_date.asc()))
    return list(res.scalars().all())


async def sales_report(db: AsyncSession, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
    return aggregate_sales(await fetch_orders_between(db, start, end))


async def analytics_report(db: AsyncSession) -> dict:
    res = await db.execute(select(Subscription).order_by(Subscription.created_at.asc()))
    return aggregate_revenue(res.scalars().all())


async def dashboard(db: AsyncSession, now: Optional[datetime] = None) -> dict:
    """Counters for the admin landing page plus the latest scheduled orders."""
    now = now or utc_now()
    today = datetime(now.year, now.month, now.day)
    tomorrow = today + timedelta(days=1)

    today_orders = (
        await db.execute(
            select(func.count(SubscriptionOrder.id)).where(
                SubscriptionOrder.delivery_date >= today,
                SubscriptionOrder.delivery_date < tomorrow,
                SubscriptionOrder.status == OrderStatus.UPCOMING.value,
            )
        )
    ).scalar_one()

    active_subscriptions = (
        await db.execute(
            select(func.count(Subscription.id)).where(
                Subscription.status == SubscriptionStatus.ACTIVE.value
            )
        )
    ).scalar_one()

    total_delivered = (
        await db.execute(
            select(func.count(SubscriptionOrder.id)).where(
                SubscriptionOrder.status == OrderStatus.DELIVERED.value
            )
        )
    ).scalar_one()

    amounts = (
        await db.execute(
            select(Subscription.total_amount).where(
                Subscription.status.in_(
                    [SubscriptionStatus.ACTIVE.value, SubscriptionStatus.COMPLETED.value]
                )
            )
        )
    ).scalars().all()
    total_revenue = sum((to_decimal(a or 0) for a in amounts), Decimal("0"))

    recent = await db.execute(
        select(SubscriptionOrder, Subscription)
        .join(Subscription, SubscriptionOrder.subscription_id == Subscription.id)
        .order_by(SubscriptionOrder.created_at.desc(), SubscriptionOrder.id.desc())
        .limit(RECENT_ORDERS_LIMIT)
    )

    return {
        "stats": {
            "todayOrders": today_orders,
            "activeSubscriptions": active_subscriptions,
            "totalDelivered": total_delivered,
            "totalRevenue": float(total_revenue),
        },
        "recentOrders": [
            {
                "id": order.id,
                "deliveryDate": order.delivery_date.isoformat(),
                "day": order.day,
                "mealType": order.meal_type,
                "status": order.status,
                "customerName": sub.customer_name,
                "customerEmail": sub.customer_email,
            }
            for order, sub in recent.all()
        ],
    }
