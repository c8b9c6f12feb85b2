"""
Pytest configuration and shared fixtures for the Royale backend tests.

Provides an in-memory SQLite DB, an httpx client bound to the FastAPI app,
admin auth headers, and seeded subscriptions with scheduled orders.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest
from datetime import datetime, timedelta
from typing import AsyncGenerator

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from database import Base, get_db
from config import settings
from middleware.rate_limit import _limiter

# ── Test Configuration ───────────────────────────────────────────────
# Set test-only values for settings that would normally come from .env
settings.jwt_secret = "test-jwt-secret-for-pytest-only"
settings.admin_password = "test-admin-password"
settings.simulation_mode = True
settings.stripe_webhook_secret = ""
settings.meal_price = 10.0

TEST_ORDER_ID = "RI-TEST0001"


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def file_session_maker(tmp_path):
    """
    Session factory over a SQLite file.

    For tests that need two sessions writing at once; the in-memory
    StaticPool engine above shares a single connection.
    """
    from database import build_engine

    engine = build_engine(f"sqlite:///{tmp_path / 'royale.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx client against the app with the in-memory database.

    Overrides get_db dependency to use test DB session.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Rate limit counters are process-global; start every test clean."""
    _limiter.reset()
    yield
    _limiter.reset()


@pytest.fixture
def admin_headers() -> dict:
    from middleware.auth import issue_access_token
    return {"Authorization": f"Bearer {issue_access_token()}"}


# ── Test Data Fixtures ────────────────────────────────────────────────


@pytest.fixture
def now() -> datetime:
    """Fixed "current time": Monday 2024-01-01 09:00 UTC."""
    return datetime(2024, 1, 1, 9, 0)


@pytest.fixture
async def active_subscription(db_session: AsyncSession):
    """
    An active, paid subscription with three upcoming deliveries relative to
    the real clock: 72h, 24h and 60h out.
    """
    from db_models import Subscription, SubscriptionOrder
    from utils.timeutils import utc_now

    sub = Subscription(
        order_id=TEST_ORDER_ID,
        customer_name="Asha Rao",
        customer_email="asha@example.com",
        customer_phone="555-0100",
        customer_address="1 Curry Lane",
        selected_days=[{"day": "Monday", "mealType": "lunch"}],
        num_weeks=3,
        total_meals=3,
        total_amount=30.0,
        stripe_session_id="cs_test_1",
        stripe_payment_intent_id="pi_test_1",
        status="active",
    )
    db_session.add(sub)
    await db_session.flush()

    base = utc_now()
    for hours in (72, 24, 60):
        db_session.add(
            SubscriptionOrder(
                subscription_id=sub.id,
                order_id=sub.order_id,
                delivery_date=base + timedelta(hours=hours),
                day="Monday",
                meal_type="lunch",
                meal_price=10.0,
                status="upcoming",
                refund_status="none",
            )
        )
    await db_session.commit()
    await db_session.refresh(sub)
    return sub


@pytest.fixture
async def pending_subscription(db_session: AsyncSession):
    """A checkout that has not been paid yet (Monday lunch + Wednesday dinner, 2 weeks)."""
    from db_models import Subscription

    sub = Subscription(
        order_id="RI-PEND0001",
        customer_name="Ben Ortiz",
        customer_email="ben@example.com",
        customer_phone="555-0101",
        customer_address="2 Naan Street",
        selected_days=[
            {"day": "Monday", "mealType": "lunch"},
            {"day": "Wednesday", "mealType": "dinner"},
        ],
        num_weeks=2,
        total_meals=4,
        total_amount=40.0,
        stripe_session_id="cs_test_2",
        status="pending",
    )
    db_session.add(sub)
    await db_session.commit()
    await db_session.refresh(sub)
    return sub


@pytest.fixture
async def overdue_order(db_session: AsyncSession, active_subscription):
    """A delivery of the active subscription that passed two hours ago but was never marked delivered."""
    from db_models import SubscriptionOrder
    from utils.timeutils import utc_now

    order = SubscriptionOrder(
        subscription_id=active_subscription.id,
        order_id=active_subscription.order_id,
        delivery_date=utc_now() - timedelta(hours=2),
        day="Monday",
        meal_type="lunch",
        meal_price=10.0,
        status="upcoming",
        refund_status="none",
    )
    db_session.add(order)
    await db_session.commit()
    await db_session.refresh(order)
    return order
