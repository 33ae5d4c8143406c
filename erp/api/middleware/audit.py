"""Audit logging middleware.

Records successful mutating requests (POST, PATCH, PUT, DELETE) in
audit_log, scoped by tenant. Login and operational endpoints are skipped.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

if TYPE_CHECKING:
    from fastapi import Request, Response

from erp.api.auth import verify_jwt
from erp.config import get_settings

logger = logging.getLogger(__name__)

_SKIP_PATHS = {"/health", "/metrics", "/auth/login"}
_AUDIT_METHODS = {"POST", "PATCH", "PUT", "DELETE"}

_engine: AsyncEngine | None = None


async def _get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(settings.database.url)
    return _engine


def _extract_resource(path: str) -> tuple[str, str | None]:
    """Split a path into resource type and target user id.

    /settings/company                       -> ("settings/company", None)
    /settings/user-permissions/42/reset     -> ("settings/user-permissions/reset", "42")
    """
    parts = [p for p in path.strip("/").split("/") if p]
    if "user-permissions" in parts:
        idx = parts.index("user-permissions")
        if idx + 1 < len(parts):
            resource_id = parts[idx + 1]
            rest = parts[:idx + 1] + parts[idx + 2:]
            return "/".join(rest), resource_id
    return "/".join(parts), None


def _caller(request: Request) -> dict[str, Any]:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return {}
    try:
        return verify_jwt(auth_header[7:], get_settings().auth.jwt_secret)
    except ValueError:
        return {}


class AuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method not in _AUDIT_METHODS or request.url.path in _SKIP_PATHS:
            return await call_next(request)

        response = await call_next(request)

        # Only successful mutations
        if response.status_code < 200 or response.status_code >= 300:
            return response

        payload = _caller(request)
        if not payload:
            return response

        resource_type, resource_id = _extract_resource(request.url.path)
        ip_address = request.client.host if request.client else None

        try:
            engine = await _get_engine()
            async with engine.begin() as conn:
                await conn.execute(
                    text("""
                        INSERT INTO audit_log
                            (tenant_id, user_id, action, resource_type, resource_id, ip_address)
                        VALUES
                            (:tenant_id, :user_id, :action, :resource_type, :resource_id,
                             :ip_address)
                    """),
                    {
                        "tenant_id": payload.get("tenant_id"),
                        "user_id": payload.get("user_id"),
                        "action": request.method,
                        "resource_type": resource_type,
                        "resource_id": resource_id,
                        "ip_address": ip_address,
                    },
                )
        except Exception:
            logger.warning("Failed to write audit log", exc_info=True)

        return response
