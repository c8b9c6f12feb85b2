"""
Admin authentication helpers.

The back office is protected by a single shared admin password. Logging in
(routes/admin.py) exchanges the password for a short-lived, signed HS256 JWT;
every admin endpoint then requires:

    Authorization: Bearer <jwt>

The password itself is never sent again after login, and tokens expire after
ADMIN_SESSION_TTL_MINUTES.
"""
import hmac
import logging
from datetime import datetime, timezone, timedelta
from fastapi import HTTPException, Header
from typing import Optional

import jwt

from config import settings

logger = logging.getLogger(__name__)

ADMIN_SUBJECT = "admin"
ADMIN_ROLE = "admin"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def _require_secret() -> str:
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=500,
            detail="Server auth misconfigured (JWT secret missing).",
        )
    return settings.jwt_secret


def check_admin_password(password: Optional[str]) -> bool:
    """Constant-time comparison against the configured admin password."""
    if not settings.admin_password:
        raise HTTPException(status_code=500, detail="Server configuration error")
    if not password:
        return False
    return hmac.compare_digest(
        password.encode("utf-8"),
        settings.admin_password.encode("utf-8"),
    )


def decode_access_token(token: str) -> dict:
    secret = _require_secret()
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Session expired. Please log in again.")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid access token.")


def issue_access_token(*, subject: str = ADMIN_SUBJECT, role: str = ADMIN_ROLE) -> str:
    secret = _require_secret()
    now = _now_utc()
    exp = now.replace(microsecond=0) + timedelta(minutes=settings.admin_session_ttl_minutes)
    payload = {
        "iss": settings.jwt_issuer,
        "sub": subject,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


async def require_admin(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> str:
    """Dependency for back-office routes: a valid admin bearer token is required."""
    token = _parse_bearer_token(authorization)
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Unauthorized. Provide Authorization: Bearer <token> from /admin/login.",
        )
    payload = decode_access_token(token)
    if payload.get("role") != ADMIN_ROLE:
        logger.warning(f"Non-admin token used on admin route (sub={payload.get('sub')})")
        raise HTTPException(status_code=403, detail="Admin role required.")
    return payload["sub"]
