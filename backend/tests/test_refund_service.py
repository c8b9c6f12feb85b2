"""
Tests for the 48-hour cancellation refund rule.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from domain.enums import RefundDecision
from services.refund_service import (
    OrderSnapshot,
    is_cancellable,
    is_refund_eligible,
    plan_cancellation,
    to_decimal,
)

NOW = datetime(2024, 1, 1, 9, 0)


class TestRefundEligibility:

    @pytest.mark.unit
    def test_49_hours_is_refunded(self):
        assert is_refund_eligible(NOW + timedelta(hours=49), NOW) is True

    @pytest.mark.unit
    def test_47_hours_is_not_refunded(self):
        assert is_refund_eligible(NOW + timedelta(hours=47), NOW) is False

    @pytest.mark.unit
    def test_exactly_48_hours_is_not_refunded(self):
        assert is_refund_eligible(NOW + timedelta(hours=48), NOW) is False

    @pytest.mark.unit
    def test_one_second_past_48_hours_is_refunded(self):
        assert is_refund_eligible(NOW + timedelta(hours=48, seconds=1), NOW) is True

    @pytest.mark.unit
    def test_past_delivery_not_cancellable(self):
        assert is_cancellable(NOW - timedelta(minutes=1), NOW) is False
        assert is_cancellable(NOW, NOW) is False
        assert is_cancellable(NOW + timedelta(minutes=1), NOW) is True


class TestPlanCancellation:

    @pytest.mark.unit
    def test_mixed_batch_totals(self):
        """72h and 60h out are refunded, 24h out is not: total is 2 × $10."""
        orders = [
            OrderSnapshot(1, NOW + timedelta(hours=72)),
            OrderSnapshot(2, NOW + timedelta(hours=24)),
            OrderSnapshot(3, NOW + timedelta(hours=60)),
        ]
        plan = plan_cancellation(orders, now=NOW, meal_price=10.0)

        assert plan.eligible_count == 2
        assert plan.no_refund_count == 1
        assert plan.total_refund == Decimal("20")
        assert plan.decision_map() == {1: "refund", 2: "no_refund", 3: "refund"}

    @pytest.mark.unit
    def test_past_orders_are_skipped(self):
        orders = [
            OrderSnapshot("past", NOW - timedelta(hours=1)),
            OrderSnapshot("soon", NOW + timedelta(hours=2)),
        ]
        plan = plan_cancellation(orders, now=NOW, meal_price=10)

        assert plan.skipped_past == ["past"]
        assert [d.order_id for d in plan.decisions] == ["soon"]
        assert plan.decisions[0].decision == RefundDecision.NO_REFUND

    @pytest.mark.unit
    def test_total_has_no_float_drift(self):
        orders = [OrderSnapshot(i, NOW + timedelta(days=5 + i)) for i in range(3)]
        plan = plan_cancellation(orders, now=NOW, meal_price=0.1)
        assert plan.total_refund == Decimal("0.3")

    @pytest.mark.unit
    def test_empty_batch(self):
        plan = plan_cancellation([], now=NOW, meal_price=10)
        assert plan.decisions == []
        assert plan.total_refund == Decimal("0")

    @pytest.mark.unit
    def test_preserves_input_order(self):
        orders = [
            OrderSnapshot("b", NOW + timedelta(hours=100)),
            OrderSnapshot("a", NOW + timedelta(hours=50)),
        ]
        plan = plan_cancellation(orders, now=NOW, meal_price=10)
        assert [d.order_id for d in plan.decisions] == ["b", "a"]


class TestToDecimal:

    @pytest.mark.unit
    def test_float_converted_via_str(self):
        assert to_decimal(10.1) == Decimal("10.1")

    @pytest.mark.unit
    def test_decimal_passthrough(self):
        value = Decimal("12.50")
        assert to_decimal(value) is value
