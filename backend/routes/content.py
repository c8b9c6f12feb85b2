"""
Public site content: copy blocks, weekly menu and the contact form.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from domain.responses import success_response
from middleware.rate_limit import rate_limit
from models import ContactRequest
from services import content_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["content"])


@router.get("/content")
async def get_content(db: AsyncSession = Depends(get_db)):
    rows = await content_service.list_content(db)
    return success_response([content_service.serialize_content(r) for r in rows])


@router.get("/menu")
async def get_menu(db: AsyncSession = Depends(get_db)):
    """Active menu items, Monday first."""
    items = await content_service.list_menu(db, active_only=True)
    return success_response([content_service.serialize_menu_item(i) for i in items])


@router.post("/contact")
async def submit_contact(
    body: ContactRequest,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(max_requests=5, window_seconds=600)),
):
    submission = await content_service.submit_contact(
        db,
        name=body.name,
        email=body.email,
        subject=body.subject,
        message=body.message,
        phone=body.phone,
    )
    await db.commit()
    return success_response({"id": submission.id})
