"""
Export Service — xlsx downloads for the back office.

Each export is a single sheet: a header row taken from the first record's
keys, then one row per record.
"""
import io
import json
import logging
from datetime import datetime
from typing import Optional

from openpyxl import Workbook
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Subscription, SubscriptionOrder
from services import report_service
from utils.timeutils import utc_now

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

EXPORT_TYPES = {
    "orders": "Orders",
    "subscriptions": "Subscriptions",
    "sales": "Sales",
}


def build_workbook(rows: list[dict], sheet_name: str) -> bytes:
    """Serialize records into an in-memory xlsx file."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name
    if rows:
        headers = list(rows[0].keys())
        ws.append(headers)
        for row in rows:
            ws.append([row.get(h) for h in headers])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


async def order_rows(db: AsyncSession, start: Optional[datetime], end: Optional[datetime]) -> list[dict]:
    query = select(SubscriptionOrder, Subscription).join(
        Subscription, SubscriptionOrder.subscription_id == Subscription.id
    )
    if start:
        query = query.where(SubscriptionOrder.delivery_date >= start)
    if end:
        query = query.where(SubscriptionOrder.delivery_date < end)
    res = await db.execute(query.order_by(SubscriptionOrder.delivery_date.desc()))
    return [
        {
            "Order ID": order.id,
            "Subscription ID": order.subscription_id,
            "Customer Name": sub.customer_name,
            "Customer Email": sub.customer_email,
            "Customer Phone": sub.customer_phone,
            "Customer Address": sub.customer_address,
            "Subscription Order ID": sub.order_id,
            "Delivery Date": order.delivery_date,
            "Day": order.day,
            "Meal Type": order.meal_type,
            "Meal Price": order.meal_price,
            "Status": order.status,
            "Refund Status": order.refund_status or "",
            "Cancelled At": order.cancelled_at or "",
        }
        for order, sub in res.all()
    ]


async def subscription_rows(db: AsyncSession, start: Optional[datetime], end: Optional[datetime]) -> list[dict]:
    query = select(Subscription)
    if start:
        query = query.where(Subscription.created_at >= start)
    if end:
        query = query.where(Subscription.created_at < end)
    res = await db.execute(query.order_by(Subscription.id.desc()))
    return [
        {
            "Order ID": sub.order_id,
            "Customer Name": sub.customer_name,
            "Customer Email": sub.customer_email,
            "Customer Phone": sub.customer_phone,
            "Customer Address": sub.customer_address,
            "Selected Days": json.dumps(sub.selected_days),
            "Num Weeks": sub.num_weeks,
            "Total Meals": sub.total_meals,
            "Total Amount": sub.total_amount,
            "Status": sub.status,
            "Payment Intent": sub.stripe_payment_intent_id or "",
            "Created At": sub.created_at,
        }
        for sub in res.scalars().all()
    ]


async def sales_rows(db: AsyncSession, start: Optional[datetime], end: Optional[datetime]) -> list[dict]:
    report = await report_service.sales_report(db, start, end)
    return [
        {
            "Date": day["date"],
            "Total Orders": day["orderCount"],
            "Revenue": day["revenue"],
            "Refunds": day["refunds"],
            "Net": day["net"],
        }
        for day in report["daily"]
    ]


_FETCHERS = {
    "orders": order_rows,
    "subscriptions": subscription_rows,
    "sales": sales_rows,
}


async def export(
    db: AsyncSession,
    export_type: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    today: Optional[datetime] = None,
) -> dict:
    """
    Build an xlsx export. Unknown types fall back to "orders".

    Returns:
        dict: {content, filename, media_type, rows}
    """
    if export_type not in EXPORT_TYPES:
        export_type = "orders"
    rows = await _FETCHERS[export_type](db, start, end)
    content = build_workbook(rows, EXPORT_TYPES[export_type])
    stamp = (today or utc_now()).date().isoformat()
    logger.info(f"Export {export_type}: {len(rows)} row(s)")
    return {
        "content": content,
        "filename": f"{export_type}-export-{stamp}.xlsx",
        "media_type": XLSX_MEDIA_TYPE,
        "rows": len(rows),
    }
