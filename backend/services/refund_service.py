"""
Refund Service — decides which cancelled meals are refunded.

Cancellation window:
    - Deliveries at or before `now` are already past and cannot be cancelled
    - Deliveries strictly more than 48 hours away are refunded one meal price
    - Everything in between is cancelled without refund

Totals are computed with Decimal as count × price, never by repeated float
addition.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Hashable, Iterable

from domain.constants import REFUND_WINDOW_HOURS
from domain.enums import RefundDecision
from utils.timeutils import to_naive_utc

REFUND_WINDOW = timedelta(hours=REFUND_WINDOW_HOURS)


@dataclass(frozen=True)
class OrderSnapshot:
    """The two fields of an upcoming order that the refund rule looks at."""
    order_id: Hashable
    delivery_at: datetime


@dataclass(frozen=True)
class CancellationDecision:
    order_id: Hashable
    delivery_at: datetime
    decision: RefundDecision

    @property
    def is_refund(self) -> bool:
        return self.decision == RefundDecision.REFUND


@dataclass
class CancellationPlan:
    """Per-order decisions for one cancellation batch, in input order."""
    meal_price: Decimal
    decisions: list[CancellationDecision] = field(default_factory=list)
    skipped_past: list[Hashable] = field(default_factory=list)

    @property
    def refund_eligible(self) -> list[CancellationDecision]:
        return [d for d in self.decisions if d.is_refund]

    @property
    def eligible_count(self) -> int:
        return len(self.refund_eligible)

    @property
    def no_refund_count(self) -> int:
        return len(self.decisions) - self.eligible_count

    @property
    def total_refund(self) -> Decimal:
        return self.meal_price * self.eligible_count

    def decision_map(self) -> dict:
        return {d.order_id: d.decision.value for d in self.decisions}


def to_decimal(amount) -> Decimal:
    """Convert a float/str/int price to Decimal without binary float noise."""
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def is_cancellable(delivery_at: datetime, now: datetime) -> bool:
    """An order can be cancelled only while its delivery is still in the future."""
    return to_naive_utc(delivery_at) > to_naive_utc(now)


def is_refund_eligible(delivery_at: datetime, now: datetime) -> bool:
    """True iff delivery is strictly more than 48 hours after `now`."""
    return to_naive_utc(delivery_at) - to_naive_utc(now) > REFUND_WINDOW


def plan_cancellation(
    orders: Iterable[OrderSnapshot],
    now: datetime,
    meal_price,
) -> CancellationPlan:
    """
    Partition upcoming orders into refund / no-refund decisions.

    Args:
        orders: snapshots of orders already filtered to status "upcoming"
        now: decision time
        meal_price: refund amount per eligible meal

    Returns:
        CancellationPlan with one decision per future order; past orders are
        listed in skipped_past and get no decision.
    """
    plan = CancellationPlan(meal_price=to_decimal(meal_price))
    for order in orders:
        if not is_cancellable(order.delivery_at, now):
            plan.skipped_past.append(order.order_id)
            continue
        decision = (
            RefundDecision.REFUND
            if is_refund_eligible(order.delivery_at, now)
            else RefundDecision.NO_REFUND
        )
        plan.decisions.append(CancellationDecision(order.order_id, order.delivery_at, decision))
    return plan
