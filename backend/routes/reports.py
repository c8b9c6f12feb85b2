"""
Admin reporting endpoints — sales, revenue analytics and xlsx exports.
"""
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from domain.responses import success_response
from middleware.auth import require_admin
from services import export_service, report_service
from utils.validators import date_range_params

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["reports"])


@router.get("/sales")
async def get_sales(
    dates: dict = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    """Per-delivery-date revenue and refunds, with net totals."""
    report = await report_service.sales_report(db, dates["start"], dates["end"])
    return success_response(report)


@router.get("/analytics")
async def get_analytics(
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    """Paid subscription revenue bucketed by week, month and year."""
    return success_response(await report_service.analytics_report(db))


@router.get("/export")
async def export(
    type: str = Query("orders", description="orders | subscriptions | sales"),
    dates: dict = Depends(date_range_params),
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    result = await export_service.export(db, type, dates["start"], dates["end"])
    return Response(
        content=result["content"],
        media_type=result["media_type"],
        headers={"Content-Disposition": f'attachment; filename="{result["filename"]}"'},
    )
