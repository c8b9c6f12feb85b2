"""
Seed the weekday menu and default site copy.

Creates tables if needed, then inserts a Monday–Friday menu and the
content keys the public site reads. Existing rows are left untouched, so
the script is safe to re-run after admins have edited content.

Run from the backend/ directory:
    python scripts/seed_content.py
"""
import asyncio
import os
import sys

# Add backend/ to path so we can import config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from database import async_session, init_db
from db_models import MenuItem, SiteContent
from domain.enums import Weekday

DEFAULT_MENU = {
    Weekday.MONDAY: ("Samosa", "Butter Chicken", "Chicken Biryani", "Egg Curry", "Garlic Naan"),
    Weekday.TUESDAY: ("Onion Bhaji", "Chana Masala", "Veg Biryani", "Egg Bhurji", "Butter Naan"),
    Weekday.WEDNESDAY: ("Paneer Pakora", "Lamb Rogan Josh", "Lamb Biryani", "Masala Omelette", "Plain Naan"),
    Weekday.THURSDAY: ("Aloo Tikki", "Dal Makhani", "Hyderabadi Biryani", "Egg Masala", "Kulcha"),
    Weekday.FRIDAY: ("Chicken 65", "Chicken Tikka Masala", "Prawn Biryani", "Anda Curry", "Peshwari Naan"),
}

DEFAULT_CONTENT = {
    "hero_title": "The Royale Indian",
    "hero_subtitle": "Home-style Indian meals, delivered Monday to Friday",
    "menu_intro": "Each day brings a new selection of appetizers, curries, biryanis and fresh naan.",
    "subscribe_intro": "Pick your days and meals, choose how many weeks, and we handle the rest.",
    "cancellation_policy": "Deliveries more than 48 hours away are refunded when cancelled.",
    "contact_email": "hello@example.com",
    "footer_tagline": "Cooked fresh every weekday.",
}


async def seed():
    await init_db()

    async with async_session() as db:
        existing_days = set((await db.execute(select(MenuItem.day))).scalars().all())
        for day, (appetizer, curry, biryani, egg, naan) in DEFAULT_MENU.items():
            if day.value in existing_days:
                continue
            db.add(
                MenuItem(
                    day=day.value,
                    appetizer=appetizer,
                    curry=curry,
                    biryani=biryani,
                    egg=egg,
                    naan=naan,
                    is_active=True,
                )
            )
            print(f"🍛 Menu: {day.value}")

        existing_keys = set((await db.execute(select(SiteContent.key))).scalars().all())
        for key, value in DEFAULT_CONTENT.items():
            if key in existing_keys:
                continue
            db.add(SiteContent(key=key, value=value, type="text"))
            print(f"📝 Content: {key}")

        await db.commit()

    print("✅ Seed complete")


if __name__ == "__main__":
    asyncio.run(seed())
