"""
Input validation utilities for the Royale backend.

Provides reusable validators for public order ids and report filters.
"""
import re
from datetime import timedelta

from fastapi import HTTPException, Path, Query

from domain.constants import ORDER_ID_PREFIX, ORDER_ID_LENGTH
from utils.timeutils import parse_date_param

_ORDER_ID_RE = re.compile(rf"^{re.escape(ORDER_ID_PREFIX)}[A-Z0-9]{{{ORDER_ID_LENGTH}}}$")


def validate_order_id(order_id: str) -> str:
    """
    Validate a public subscription order id ("RI-" + 8 upper-case alphanumerics).

    Lower-case input is accepted and normalized, since customers type it in.

    Raises:
        HTTPException(400) if the id is malformed
    """
    if not order_id:
        raise HTTPException(status_code=400, detail="Order ID is required")

    normalized = order_id.strip().upper()
    if not _ORDER_ID_RE.match(normalized):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid order ID: {order_id[:20]}",
        )
    return normalized


def validated_order_id(order_id: str = Path(..., description="Subscription order id, e.g. RI-AB12CD34")) -> str:
    """FastAPI dependency for validating order id path parameters."""
    return validate_order_id(order_id)


def validate_date_param(value: str | None, field: str):
    """Parse an optional date filter, mapping bad input to a 400."""
    try:
        return parse_date_param(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {field}: expected YYYY-MM-DD or ISO-8601 timestamp",
        )


def date_range_params(
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
) -> dict:
    """
    FastAPI dependency for the startDate/endDate report filters.

    A date-only endDate covers that whole day, so "end" is exclusive.
    """
    end = validate_date_param(end_date, "endDate")
    if end is not None and len(end_date.strip()) == 10:
        end = end + timedelta(days=1)
    elif end is not None:
        end = end + timedelta(microseconds=1)
    return {
        "start": validate_date_param(start_date, "startDate"),
        "end": end,
    }
