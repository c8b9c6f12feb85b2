"""
Content Service: editable site copy, weekday menu and contact form messages.
"""

import logging

from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import ContactSubmission, MenuItem, SiteContent
from domain.enums import Weekday
from domain.errors import NotFoundError, ValidationError
from utils.timeutils import utc_now

logger = logging.getLogger(__name__)

MENU_EDITABLE_FIELDS = {
    "day",
    "appetizer",
    "curry",
    "biryani",
    "egg",
    "naan",
    "price",
    "discount_percent",
    "description",
    "image_url",
    "is_active",
}

_WEEKDAY_ORDER = case(
    {day.value: day.index for day in Weekday},
    value=MenuItem.day,
    else_=len(Weekday),
)


# Key prefix → admin editor section
SECTION_PREFIXES = (
    ("hero_", "Hero"),
    ("about_", "About"),
    ("menu_", "Menu"),
    ("subscribe_", "Subscribe"),
    ("contact_", "Contact"),
    ("footer_", "Footer"),
)
POLICY_KEYS = {"privacy_policy", "terms_conditions", "cancellation_policy"}


def content_section(key: str) -> str:
    for prefix, section in SECTION_PREFIXES:
        if key.startswith(prefix):
            return section
    if key in POLICY_KEYS:
        return "Policies"
    return "Other"


def serialize_content(row: SiteContent) -> dict:
    return {
        "id": row.id,
        "key": row.key,
        "value": row.value,
        "type": row.type,
        "section": content_section(row.key),
    }


def serialize_menu_item(item: MenuItem) -> dict:
    return {
        "id": item.id,
        "day": item.day,
        "appetizer": item.appetizer,
        "curry": item.curry,
        "biryani": item.biryani,
        "egg": item.egg,
        "naan": item.naan,
        "price": item.price,
        "discount_percent": item.discount_percent,
        "description": item.description,
        "image_url": item.image_url,
        "is_active": item.is_active,
    }


async def list_content(db: AsyncSession) -> list[SiteContent]:
    res = await db.execute(select(SiteContent).order_by(SiteContent.key))
    return res.scalars().all()


async def upsert_content(db: AsyncSession, *, key: str, value: str | None, type: str | None = None) -> SiteContent:
    """Insert or update a content entry by key."""
    if not key:
        raise ValidationError("Content key is required", field="key")

    res = await db.execute(select(SiteContent).where(SiteContent.key == key))
    row = res.scalar_one_or_none()
    if row is None:
        row = SiteContent(key=key, value=value, type=type or "text")
        db.add(row)
    else:
        row.value = value
        if type:
            row.type = type
        row.updated_at = utc_now()
    await db.flush()
    logger.info(f"Site content '{key}' saved")
    return row


async def list_menu(db: AsyncSession, *, active_only: bool = False) -> list[MenuItem]:
    query = select(MenuItem)
    if active_only:
        query = query.where(MenuItem.is_active == True)
    res = await db.execute(query.order_by(_WEEKDAY_ORDER, MenuItem.id))
    return res.scalars().all()


async def update_menu_item(db: AsyncSession, *, item_id: int, fields: dict) -> MenuItem:
    """Update whitelisted fields of a menu item. Unknown fields are rejected."""
    item = await db.get(MenuItem, item_id)
    if not item:
        raise NotFoundError("Menu item", str(item_id))

    unknown = set(fields) - MENU_EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown menu fields: {', '.join(sorted(unknown))}")
    if "day" in fields:
        try:
            Weekday(fields["day"])
        except ValueError:
            raise ValidationError(f"Unknown weekday '{fields['day']}'", field="day")

    for name, value in fields.items():
        setattr(item, name, value)
    item.updated_at = utc_now()
    await db.flush()
    return item


async def submit_contact(
    db: AsyncSession,
    *,
    name: str,
    email: str,
    subject: str,
    message: str,
    phone: str | None = None,
) -> ContactSubmission:
    submission = ContactSubmission(
        name=name,
        email=email,
        phone=phone or None,
        subject=subject,
        message=message,
        is_read=False,
    )
    db.add(submission)
    await db.flush()
    logger.info(f"Contact submission {submission.id} received")
    return submission
