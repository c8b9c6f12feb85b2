"""
Delivery Schedule Service — turns a subscription's selected days into
concrete delivery timestamps.

Rules:
    - Lunch is delivered at 13:00 UTC, dinner at 19:00 UTC
    - Nothing is delivered within 24 hours of activation (activation floor)
    - Exactly len(selected_days) × weeks slots are produced, sorted by time

Look-ahead:
    Every pair's first candidate is at least one calendar day ahead, and each
    later candidate is 7 days after the previous one. Only a pair's week-0
    candidate can therefore land at or below the floor (now + 24h); its
    week-1 candidate is more than 7 days out. Searching one extra week thus
    leaves at least `weeks` survivors per pair, and since any 7×weeks-day
    window after the floor holds exactly `weeks` occurrences of each pair,
    the earliest len(selected_days) × weeks survivors give every pair
    exactly `weeks` deliveries.

Pure functions only: no DB, no settings. The caller validates that
selected_days is non-empty and weeks >= 1.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from domain.constants import ACTIVATION_DELAY_HOURS, DELIVERY_HOURS
from domain.enums import MealType, Weekday
from utils.timeutils import to_naive_utc, utc_now

LOOKAHEAD_WEEKS = 1


@dataclass(frozen=True)
class SelectedDay:
    """A (weekday, meal type) pair picked at subscription time."""
    day: Weekday
    meal_type: MealType

    @classmethod
    def from_dict(cls, data: dict) -> "SelectedDay":
        """Build from the stored JSON shape {"day": "Monday", "mealType": "lunch"}."""
        return cls(
            day=Weekday(data["day"]),
            meal_type=MealType(data.get("mealType") or data.get("meal_type")),
        )

    def to_dict(self) -> dict:
        return {"day": self.day.value, "mealType": self.meal_type.value}


@dataclass(frozen=True)
class DeliverySlot:
    """One generated delivery: naive UTC timestamp plus the pair it came from."""
    delivery_at: datetime
    day: Weekday
    meal_type: MealType


def unique_selected_days(selected_days: Iterable[SelectedDay]) -> list[SelectedDay]:
    """Drop repeated pairs, keeping first-seen order."""
    return list(dict.fromkeys(selected_days))


def next_delivery_time(now: datetime, day: Weekday, meal_type: MealType, week_offset: int = 0) -> datetime:
    """
    Delivery time of `day`/`meal_type` in week `week_offset` after `now`.

    Week 0 is the next occurrence of `day` strictly after today's date, so a
    Monday subscription created on a Monday starts the following Monday.
    """
    days_until = day.index - now.weekday()
    if days_until <= 0:
        days_until += 7
    target = now + timedelta(days=days_until + 7 * week_offset)
    return target.replace(
        hour=DELIVERY_HOURS[meal_type.value],
        minute=0,
        second=0,
        microsecond=0,
    )


def activation_floor(now: datetime) -> datetime:
    """Earliest instant (exclusive) a delivery may be scheduled."""
    return now + timedelta(hours=ACTIVATION_DELAY_HOURS)


def generate_delivery_slots(
    selected_days: Iterable[SelectedDay],
    weeks: int,
    now: Optional[datetime] = None,
) -> list[DeliverySlot]:
    """
    Generate the delivery schedule for an activated subscription.

    Args:
        selected_days: (weekday, meal type) pairs; duplicates are ignored
        weeks: number of subscribed weeks (>= 1)
        now: activation time; defaults to the current UTC time

    Returns:
        list[DeliverySlot]: exactly len(unique pairs) × weeks slots, strictly
        increasing, each later than now + 24h
    """
    now = to_naive_utc(now) if now is not None else utc_now()
    pairs = unique_selected_days(selected_days)
    floor = activation_floor(now)
    quota = len(pairs) * weeks

    slots: list[DeliverySlot] = []
    for week in range(weeks + LOOKAHEAD_WEEKS):
        for pair in pairs:
            delivery_at = next_delivery_time(now, pair.day, pair.meal_type, week)
            if delivery_at > floor:
                slots.append(DeliverySlot(delivery_at, pair.day, pair.meal_type))

    slots.sort(key=lambda slot: slot.delivery_at)
    return slots[:quota]
