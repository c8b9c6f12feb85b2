"""
Tests for subscription checkout, activation and tracking.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import asyncio
import re
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from db_models import SubscriptionOrder
from domain.enums import MealType, Weekday
from domain.errors import NotFoundError, ValidationError
from services import subscription_service
from services.schedule_service import SelectedDay


def _order_count(order_id):
    return select(func.count(SubscriptionOrder.id)).where(SubscriptionOrder.order_id == order_id)


class TestNormalizeSelectedDays:

    @pytest.mark.unit
    def test_meal_type_entries(self):
        pairs = subscription_service.normalize_selected_days(
            [{"day": "Monday", "mealType": "lunch"}, {"day": "Friday", "mealType": "dinner"}]
        )
        assert pairs == [
            SelectedDay(Weekday.MONDAY, MealType.LUNCH),
            SelectedDay(Weekday.FRIDAY, MealType.DINNER),
        ]

    @pytest.mark.unit
    def test_meals_list_is_flattened(self):
        pairs = subscription_service.normalize_selected_days(
            [{"day": "Tuesday", "meals": ["lunch", "dinner"]}]
        )
        assert len(pairs) == 2

    @pytest.mark.unit
    def test_duplicates_removed(self):
        pairs = subscription_service.normalize_selected_days(
            [{"day": "Monday", "mealType": "lunch"}, {"day": "Monday", "meals": ["lunch"]}]
        )
        assert pairs == [SelectedDay(Weekday.MONDAY, MealType.LUNCH)]

    @pytest.mark.unit
    @pytest.mark.parametrize("entry", [{"day": "Saturday", "mealType": "lunch"}, {"day": "Monday", "mealType": "brunch"}])
    def test_unsupported_slot_rejected(self, entry):
        with pytest.raises(ValidationError):
            subscription_service.normalize_selected_days([entry])


class TestQuoteAndOrderId:

    @pytest.mark.unit
    def test_quote(self):
        pairs = [SelectedDay(Weekday.MONDAY, MealType.LUNCH), SelectedDay(Weekday.WEDNESDAY, MealType.DINNER)]
        assert subscription_service.quote(pairs, 3, 10.0) == {
            "total_meals": 6,
            "total_amount": Decimal("60.0"),
        }

    @pytest.mark.unit
    def test_order_id_format(self):
        for _ in range(20):
            assert re.fullmatch(r"RI-[A-Z0-9]{8}", subscription_service.generate_order_id())


class TestCreateSubscription:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_creates_pending_subscription(self, db_session):
        result = await subscription_service.create_subscription(
            db_session,
            customer_name="Asha Rao",
            customer_email="asha@example.com",
            customer_phone="555-0100",
            customer_address="1 Curry Lane",
            selected_days=[SelectedDay(Weekday.MONDAY, MealType.LUNCH)],
            weeks=4,
            meal_price=Decimal("10"),
            base_url="http://test/",
        )
        sub = result["subscription"]
        assert sub.status == "pending"
        assert sub.total_meals == 4
        assert sub.total_amount == 40.0
        assert sub.selected_days == [{"day": "Monday", "mealType": "lunch"}]
        assert sub.stripe_session_id.startswith("cs_sim_")
        assert result["checkout_url"].startswith(f"http://test/subscribe/success?order_id={sub.order_id}")


class TestActivateSubscription:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_activation_writes_schedule(self, db_session, pending_subscription, now):
        result = await subscription_service.activate_subscription(
            db_session,
            order_id=pending_subscription.order_id,
            payment_intent_id="pi_123",
            meal_price=10,
            now=now,
        )
        assert result["orders_created"] == 4
        assert pending_subscription.status == "active"
        assert pending_subscription.stripe_payment_intent_id == "pi_123"
        assert pending_subscription.activated_at == now

        res = await db_session.execute(
            select(SubscriptionOrder)
            .where(SubscriptionOrder.order_id == pending_subscription.order_id)
            .order_by(SubscriptionOrder.delivery_date)
        )
        orders = res.scalars().all()
        assert [o.delivery_date for o in orders] == [
            datetime(2024, 1, 3, 19, 0),
            datetime(2024, 1, 8, 13, 0),
            datetime(2024, 1, 10, 19, 0),
            datetime(2024, 1, 15, 13, 0),
        ]
        assert all(o.status == "upcoming" and o.refund_status == "none" for o in orders)
        assert all(o.meal_price == 10.0 for o in orders)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_activation_is_idempotent(self, db_session, pending_subscription, now):
        for offset in (0, 3):
            await subscription_service.activate_subscription(
                db_session,
                order_id=pending_subscription.order_id,
                payment_intent_id="pi_123",
                meal_price=10,
                now=now + timedelta(days=offset),
            )
        count = (await db_session.execute(_order_count(pending_subscription.order_id))).scalar_one()
        assert count == 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_subscription(self, db_session):
        with pytest.raises(NotFoundError):
            await subscription_service.activate_subscription(
                db_session, order_id="RI-NOPE0000", payment_intent_id=None, meal_price=10
            )

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_overlapping_webhook_deliveries_schedule_once(self, file_session_maker, now):
        """Two sessions activate the same subscription at once; only one writes the schedule."""
        from db_models import Subscription

        async with file_session_maker() as db:
            db.add(
                Subscription(
                    order_id="RI-RACE0001",
                    customer_name="Ben Ortiz",
                    customer_email="ben@example.com",
                    customer_phone="555-0101",
                    customer_address="2 Naan Street",
                    selected_days=[{"day": "Monday", "mealType": "lunch"}],
                    num_weeks=2,
                    total_meals=2,
                    total_amount=20.0,
                    stripe_session_id="cs_race_1",
                    status="pending",
                )
            )
            await db.commit()

        async def deliver():
            async with file_session_maker() as db:
                result = await subscription_service.activate_subscription(
                    db,
                    order_id="RI-RACE0001",
                    payment_intent_id="pi_race_1",
                    meal_price=10,
                    now=now,
                )
                await db.commit()
                return result["orders_created"]

        created = await asyncio.gather(deliver(), deliver())

        assert sorted(created) == [0, 2]
        async with file_session_maker() as db:
            assert (await db.execute(_order_count("RI-RACE0001"))).scalar_one() == 2
            sub = (await db.execute(select(Subscription))).scalar_one()
            assert sub.status == "active"
            assert sub.stripe_payment_intent_id == "pi_race_1"


class TestHandleWebhookEvent:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_other_events_ignored(self, db_session):
        result = await subscription_service.handle_webhook_event(
            db_session, {"type": "payment_intent.created"}, meal_price=10
        )
        assert result["status"] == "ignored"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_order_id_rejected(self, db_session):
        event = {"type": "checkout.session.completed", "data": {"object": {"metadata": {}}}}
        with pytest.raises(ValidationError):
            await subscription_service.handle_webhook_event(db_session, event, meal_price=10)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_checkout_completed_activates(self, db_session, pending_subscription):
        event = {
            "type": "checkout.session.completed",
            "data": {"object": {"payment_intent": "pi_9", "metadata": {"order_id": pending_subscription.order_id}}},
        }
        result = await subscription_service.handle_webhook_event(db_session, event, meal_price=10)
        assert result == {"status": "activated", "ordersCreated": 4}
        assert pending_subscription.status == "active"


class TestTracking:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tracking_flags(self, db_session, active_subscription):
        data = await subscription_service.get_tracking(db_session, active_subscription.order_id)
        assert data["subscription"]["orderId"] == active_subscription.order_id
        flags = [(o["cancellable"], o["refundEligible"]) for o in data["orders"]]
        # ordered by delivery: +24h, +60h, +72h
        assert flags == [(True, False), (True, True), (True, True)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tracking_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            await subscription_service.get_tracking(db_session, "RI-NOPE0000")
