"""
Domain enums for subscriptions, scheduled orders and refunds.
"""

from enum import Enum


class Weekday(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"

    @property
    def index(self) -> int:
        """Python weekday number (Monday == 0)."""
        return list(Weekday).index(self)


class MealType(str, Enum):
    LUNCH = "lunch"
    DINNER = "dinner"


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderStatus(str, Enum):
    UPCOMING = "upcoming"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class RefundStatus(str, Enum):
    NONE = "none"
    REFUNDED = "refunded"
    NO_REFUND = "no_refund"
    REFUND_FAILED = "refund_failed"


class RefundDecision(str, Enum):
    REFUND = "refund"
    NO_REFUND = "no_refund"
