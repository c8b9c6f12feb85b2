"""
SQLAlchemy ORM models for the Royale meal subscription backend.

Tables:
    subscriptions          — one checkout per customer (selected days × weeks)
    subscription_orders    — one row per scheduled meal delivery
    cancellation_requests  — audit trail of processed cancellations
    menu_items             — weekday menu shown on the public site
    site_content           — editable key/value site copy and images
    contact_submissions    — messages from the public contact form
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, JSON, ForeignKey,
    Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base


class Subscription(Base):
    """A customer's meal plan and its payment state."""
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(20), unique=True, nullable=False, index=True)  # public "RI-XXXXXXXX"
    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(320), nullable=False, index=True)
    customer_phone = Column(String(50), nullable=False)
    customer_address = Column(Text, nullable=False)
    selected_days = Column(JSON, nullable=False)  # [{"day": "Monday", "mealType": "lunch"}, ...]
    num_weeks = Column(Integer, nullable=False)
    total_meals = Column(Integer, nullable=False)
    total_amount = Column(Float, nullable=False)
    stripe_session_id = Column(String(255), nullable=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="pending")  # pending | active | completed | cancelled
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    activated_at = Column(DateTime, nullable=True)

    # Relationships
    orders = relationship(
        "SubscriptionOrder",
        back_populates="subscription",
        lazy="select",
        order_by="SubscriptionOrder.delivery_date",
    )


class SubscriptionOrder(Base):
    """
    One scheduled meal delivery.

    delivery_date is written once at activation and never changes.
    status moves upcoming → delivered | cancelled and is then terminal.
    """
    __tablename__ = "subscription_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False, index=True)
    order_id = Column(String(20), nullable=False, index=True)  # parent subscription's public id
    delivery_date = Column(DateTime, nullable=False)  # naive UTC
    day = Column(String(10), nullable=False)
    meal_type = Column(String(10), nullable=False)  # "lunch" | "dinner"
    meal_price = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default="upcoming")
    refund_status = Column(String(20), nullable=False, default="none")  # none | refunded | no_refund | refund_failed
    stripe_refund_id = Column(String(255), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    subscription = relationship("Subscription", back_populates="orders")

    __table_args__ = (
        # Track page and cancel-all: orders of one subscription by status
        Index("ix_subscription_orders_order_status", "order_id", "status"),
        # Dashboard / sales reports: range scans over delivery time
        Index("ix_subscription_orders_delivery_status", "delivery_date", "status"),
        # One delivery per slot: a schedule is generated once per subscription
        UniqueConstraint(
            "subscription_id", "delivery_date", "meal_type",
            name="uq_subscription_orders_slot",
        ),
    )


class CancellationRequest(Base):
    """Audit row written for every processed cancellation batch."""
    __tablename__ = "cancellation_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False, index=True)
    order_id = Column(String(20), nullable=False, index=True)
    cancelled_order_ids = Column(JSON, nullable=False, default=list)
    total_refund_amount = Column(Float, nullable=False, default=0.0)
    refund_eligible_count = Column(Integer, nullable=False, default=0)
    no_refund_count = Column(Integer, nullable=False, default=0)
    refund_failed_count = Column(Integer, nullable=False, default=0)
    reason = Column(String(200), nullable=True)
    status = Column(String(20), nullable=False, default="processed")
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    subscription = relationship("Subscription")


class MenuItem(Base):
    """The dish line-up served on one weekday."""
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    day = Column(String(10), nullable=False, index=True)
    appetizer = Column(String(200), nullable=True)
    curry = Column(String(200), nullable=True)
    biryani = Column(String(200), nullable=True)
    egg = Column(String(200), nullable=True)
    naan = Column(String(200), nullable=True)
    price = Column(Float, nullable=True)
    discount_percent = Column(Float, nullable=False, default=0.0)
    description = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SiteContent(Base):
    """Editable site copy, keyed by a stable content key (e.g. "hero_title")."""
    __tablename__ = "site_content"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default="text")  # "text" | "image"
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ContactSubmission(Base):
    """Public contact form message."""
    __tablename__ = "contact_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False)
    phone = Column(String(50), nullable=True)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
