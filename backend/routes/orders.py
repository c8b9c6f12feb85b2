"""
Customer-facing order endpoints — tracking and cancellation.
"""
import logging
from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import meal_price
from middleware.rate_limit import rate_limit
from models import CancelRequest, CancelResponse
from services import cancellation_service, subscription_service
from services.subscription_service import money
from utils.validators import validate_order_id, validated_order_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["orders"])


@router.get("/track/{order_id}")
async def track_order(
    order_id: str = Depends(validated_order_id),
    db: AsyncSession = Depends(get_db),
):
    """Subscription with its deliveries, each flagged cancellable / refundEligible."""
    return await subscription_service.get_tracking(db, order_id)


@router.post("/cancel", response_model=CancelResponse)
async def cancel(
    body: CancelRequest,
    price: Decimal = Depends(meal_price),
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=10, window_seconds=60)),
):
    """
    Cancel upcoming deliveries.

    Orders more than 48 hours out are refunded at the meal price; closer
    ones are cancelled without refund.
    """
    order_id = validate_order_id(body.order_id)

    result = await cancellation_service.cancel_orders(
        db,
        order_id=order_id,
        meal_price=price,
        order_ids=body.order_ids,
        cancel_all=body.cancel_all,
        reason=body.reason,
    )
    await db.commit()

    return CancelResponse(
        refunded_count=result["refunded_count"],
        no_refund_count=result["no_refund_count"],
        refund_failed_count=result["refund_failed_count"],
        total_refund=money(result["total_refund"]),
    )
