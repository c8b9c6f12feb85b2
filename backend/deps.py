"""
Shared FastAPI dependencies.

Pagination, configured pricing and the public origin used by routers.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TypedDict

from fastapi import Query, Request

from config import settings
from services.refund_service import to_decimal


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}


def meal_price() -> Decimal:
    """Configured per-meal price, passed explicitly into pricing/refund logic."""
    return to_decimal(settings.meal_price)


def public_base_url(request: Request) -> str:
    """
    Origin used for checkout redirect URLs.

    Production uses PUBLIC_DOMAIN when set; otherwise the request's own origin.
    """
    configured = settings.public_domain.strip()
    if settings.environment == "production" and configured:
        return configured.rstrip("/")
    return str(request.base_url).rstrip("/")
