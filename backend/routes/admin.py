"""
Admin back-office endpoints — login, dashboard, orders, subscriptions,
cancellations, site content, menu and image uploads.

Everything except /admin/login requires an admin bearer token
(middleware.auth.require_admin).

Security:
    Login is rate limited to 5 attempts per 5 minutes per IP.
    Upload size and content type are checked before hitting storage.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from deps import Pagination, pagination_params
from domain.responses import paginated_response, success_response
from middleware.auth import check_admin_password, issue_access_token, require_admin
from middleware.rate_limit import rate_limit
from models import ContentUpdate, LoginRequest, LoginResponse, MenuUpdate, OrderStatusUpdate
from services import (
    cancellation_service,
    content_service,
    order_service,
    report_service,
    storage_service,
)
from services.subscription_service import serialize_order
from utils.validators import date_range_params

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# ── POST /admin/login ──────────────────────────────────────────────

@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    _rate=Depends(rate_limit(max_requests=5, window_seconds=300)),
):
    """Exchange the admin password for a session token."""
    if not check_admin_password(body.password):
        logger.warning("Failed admin login attempt")
        raise HTTPException(status_code=401, detail="Invalid password")

    token = issue_access_token()
    logger.info("Admin logged in")
    return LoginResponse(token=token, expires_in=settings.admin_session_ttl_minutes * 60)


# ── GET /admin/dashboard ───────────────────────────────────────────

@router.get("/dashboard")
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    return success_response(await report_service.dashboard(db))


# ── Orders ─────────────────────────────────────────────────────────

@router.get("/orders")
async def get_orders(
    status: Optional[str] = Query(None),
    dates: dict = Depends(date_range_params),
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    """Scheduled deliveries, latest first, with customer details."""
    rows, total = await order_service.list_orders(
        db,
        status=status,
        start=dates["start"],
        end=dates["end"],
        limit=page["limit"],
        offset=page["offset"],
    )
    return paginated_response(rows, page["limit"], page["offset"], total)


@router.put("/orders")
async def update_order(
    body: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    """Mark a delivery as delivered (or cancel it without refund)."""
    order = await order_service.update_order_status(db, order_pk=body.id, status=body.status)
    await db.commit()
    return success_response(serialize_order(order))


# ── Subscriptions & cancellations ──────────────────────────────────

@router.get("/subscriptions")
async def get_subscriptions(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    rows, total = await order_service.list_subscriptions(
        db,
        status=status,
        search=search,
        limit=page["limit"],
        offset=page["offset"],
    )
    return paginated_response(rows, page["limit"], page["offset"], total)


@router.get("/cancellations")
async def get_cancellations(
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    rows, total = await cancellation_service.list_cancellations(
        db, limit=page["limit"], offset=page["offset"]
    )
    return paginated_response(rows, page["limit"], page["offset"], total)


# ── Site content ───────────────────────────────────────────────────

@router.get("/content")
async def get_all_content(
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    rows = await content_service.list_content(db)
    return success_response([content_service.serialize_content(r) for r in rows])


@router.put("/content")
async def put_content(
    body: ContentUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    row = await content_service.upsert_content(db, key=body.key, value=body.value, type=body.type)
    await db.commit()
    return success_response(content_service.serialize_content(row))


# ── Menu ───────────────────────────────────────────────────────────

@router.get("/menu")
async def get_full_menu(
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    """All menu items, including inactive ones."""
    items = await content_service.list_menu(db)
    return success_response([content_service.serialize_menu_item(i) for i in items])


@router.put("/menu")
async def put_menu(
    body: MenuUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    item = await content_service.update_menu_item(db, item_id=body.id, fields=body.changes())
    await db.commit()
    return success_response(content_service.serialize_menu_item(item))


# ── POST /admin/upload ─────────────────────────────────────────────

@router.post("/upload")
async def upload(
    file: UploadFile = File(...),
    _admin: str = Depends(require_admin),
):
    """Upload a menu/site image to object storage and return its public URL."""
    data = await file.read(storage_service.MAX_UPLOAD_BYTES + 1)
    result = await storage_service.upload_image(
        data,
        filename=file.filename or "upload",
        content_type=file.content_type or "application/octet-stream",
    )
    return success_response(result)
