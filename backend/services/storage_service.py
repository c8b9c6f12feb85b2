"""
Storage Service — uploads menu and site images to hosted object storage.

Targets a Supabase-compatible storage REST API:
    POST {storage_url}/storage/v1/object/{bucket}/{path}
    public URL: {storage_url}/storage/v1/object/public/{bucket}/{path}
"""
import logging
import secrets
import time

import httpx

from config import settings
from domain.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _get_headers(content_type: str) -> dict:
    """Build storage authentication headers."""
    if not settings.storage_url or not settings.storage_service_key:
        raise StorageError(
            "Object storage is not configured (STORAGE_URL, STORAGE_SERVICE_KEY)"
        )
    return {
        "Authorization": f"Bearer {settings.storage_service_key}",
        "apikey": settings.storage_service_key,
        "Content-Type": content_type,
        "x-upsert": "false",
    }


def build_object_path(filename: str) -> str:
    """uploads/<millis>-<random>.<ext>, keeping the original extension."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    return f"uploads/{int(time.time() * 1000)}-{secrets.token_hex(3)}.{ext}"


def public_url(path: str) -> str:
    return f"{settings.storage_url.rstrip('/')}/storage/v1/object/public/{settings.storage_bucket}/{path}"


async def upload_image(file_bytes: bytes, filename: str, content_type: str) -> dict:
    """
    Upload an image and return its public URL.

    Returns:
        dict: {path, url, size}
    """
    if not file_bytes:
        raise ValidationError("No file provided", field="file")
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(f"Unsupported file type {content_type}", field="file")
    if len(file_bytes) > MAX_UPLOAD_BYTES:
        raise ValidationError("File too large (max 5 MB)", field="file")

    headers = _get_headers(content_type)
    path = build_object_path(filename)
    base = settings.storage_url.rstrip("/")

    try:
        async with httpx.AsyncClient(timeout=60.0) as client:
            response = await client.post(
                f"{base}/storage/v1/object/{settings.storage_bucket}/{path}",
                headers=headers,
                content=file_bytes,
            )
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Storage upload failed for {filename}: {e}")
        raise StorageError("Failed to upload file") from e

    url = public_url(path)
    logger.info(f"Image uploaded: {path} ({len(file_bytes)} bytes)")
    return {"path": path, "url": url, "size": len(file_bytes)}
