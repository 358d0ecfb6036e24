# app/api/deps/auth.py
# Identidad del actor: la autenticación es externa; el gateway entrega X-User-Id
from __future__ import annotations

from typing import Optional, Dict, Any

from fastapi import Header, HTTPException, Request, status

from app.core.settings import settings


def get_current_user_id_optional(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> Optional[int]:
    if not x_user_id:
        return None
    try:
        return int(x_user_id)
    except ValueError:
        # Header mal formado: se trata como anónimo
        return None


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> int:
    uid = get_current_user_id_optional(x_user_id)
    if uid is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return uid


def request_metadata(request: Optional[Request]) -> Dict[str, Any]:
    """user_agent / ip_address / session_id para el metadata de la revisión."""
    if request is None or not settings.REVISION_RECORD_REQUEST_METADATA:
        return {}
    ip = request.client.host if request.client else None
    return {
        "user_agent": request.headers.get("user-agent"),
        "ip_address": ip,
        "session_id": request.headers.get("X-Session-Id") or request.cookies.get("session"),
    }
