"""JWT authentication and route guards for the ERP API.

Tokens carry the caller's `user_id`, `tenant_id` and `role`. Guards either
check the role directly or resolve the caller's effective permissions.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
import uuid
from base64 import urlsafe_b64decode, urlsafe_b64encode
from typing import Any

import bcrypt
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from erp.config import get_settings
from erp.monitoring.metrics import jwt_logouts_total, login_failures_total
from erp.permissions.errors import NotFound
from erp.permissions.service import PermissionService
from erp.storage.repository import get_repository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

_engine: AsyncEngine | None = None
_redis: Any = None

_LOGIN_MAX_ATTEMPTS = 5
_LOGIN_WINDOW_SECONDS = 900  # 15 minutes


async def _get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(settings.database.url, pool_pre_ping=True)
    return _engine


async def _get_redis() -> Any:
    global _redis
    if _redis is None:
        from redis.asyncio import Redis

        settings = get_settings()
        _redis = Redis.from_url(settings.redis.url, decode_responses=True)
    return _redis


def _get_permission_service() -> PermissionService:
    return PermissionService(get_repository())


async def blacklist_token(jti: str, ttl: int) -> None:
    """Revoke a token until it would have expired anyway."""
    try:
        r = await _get_redis()
        await r.setex(f"jwt_blacklist:{jti}", ttl, "1")
    except Exception:
        logger.warning("Failed to blacklist token jti=%s", jti, exc_info=True)


async def is_token_blacklisted(jti: str) -> bool:
    try:
        r = await _get_redis()
        return await r.exists(f"jwt_blacklist:{jti}") > 0
    except Exception:
        logger.debug("Blacklist check failed, allowing request", exc_info=True)
        return False


async def _check_rate_limit(ip: str, email: str) -> bool:
    """Returns True if the login attempt should be BLOCKED."""
    try:
        r = await _get_redis()
        key = f"login_rl:{ip}:{email}"
        count = await r.incr(key)
        if count == 1:
            await r.expire(key, _LOGIN_WINDOW_SECONDS)
        return int(count) > _LOGIN_MAX_ATTEMPTS
    except Exception:
        logger.debug("Rate limit check failed, allowing request", exc_info=True)
        return False


class LoginRequest(BaseModel):
    email: str
    password: str


def _b64_encode(data: bytes) -> str:
    return urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64_decode(s: str) -> bytes:
    padding = 4 - len(s) % 4
    return urlsafe_b64decode(s + "=" * padding)


def create_jwt(payload: dict[str, Any], secret: str, expires_in: int = 86400) -> str:
    """Create an HS256 JWT."""
    header = {"alg": "HS256", "typ": "JWT"}
    payload = {
        **payload,
        "exp": int(time.time()) + expires_in,
        "iat": int(time.time()),
        "jti": str(uuid.uuid4()),
    }

    header_b64 = _b64_encode(json.dumps(header).encode())
    payload_b64 = _b64_encode(json.dumps(payload).encode())

    message = f"{header_b64}.{payload_b64}"
    signature = hmac.new(secret.encode(), message.encode(), hashlib.sha256).digest()
    return f"{message}.{_b64_encode(signature)}"


def verify_jwt(token: str, secret: str) -> dict[str, Any]:
    parts = token.split(".")
    if len(parts) != 3:
        msg = "Invalid token format"
        raise ValueError(msg)

    message = f"{parts[0]}.{parts[1]}"
    expected_sig = hmac.new(secret.encode(), message.encode(), hashlib.sha256).digest()
    if not hmac.compare_digest(expected_sig, _b64_decode(parts[2])):
        msg = "Invalid signature"
        raise ValueError(msg)

    payload = json.loads(_b64_decode(parts[1]))
    if payload.get("exp", 0) < time.time():
        msg = "Token expired"
        raise ValueError(msg)
    if not payload.get("tenant_id") or not payload.get("user_id"):
        msg = "Token is missing tenant or user"
        raise ValueError(msg)

    result: dict[str, Any] = payload
    return result


async def require_user(request: Request) -> dict[str, Any]:
    """FastAPI dependency: authenticated caller from the Bearer token."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing authorization token")

    settings = get_settings()
    try:
        payload = verify_jwt(auth_header[7:], settings.auth.jwt_secret)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    jti = payload.get("jti")
    if jti and await is_token_blacklisted(jti):
        raise HTTPException(status_code=401, detail="Token has been revoked")

    request.state.tenant_id = payload["tenant_id"]
    request.state.user_id = payload["user_id"]
    return payload


def require_role(*roles: str) -> Any:
    """Dependency factory: caller's token role must be one of `roles`.

    Usage:
        async def endpoint(user: dict = Depends(require_role("ADMIN"))):
    """

    async def _check_role(request: Request) -> dict[str, Any]:
        payload = await require_user(request)
        if payload.get("role") not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"Insufficient permissions. Required: {', '.join(roles)}",
            )
        return payload

    return _check_role


def require_capability(module: str, action: str) -> Any:
    """Dependency factory: caller's effective permissions must allow module/action.

    The user's current override is read on every request, so a changed
    override applies without a new login.
    """

    async def _check_capability(request: Request) -> dict[str, Any]:
        payload = await require_user(request)
        service = _get_permission_service()
        try:
            allowed = await service.has_capability(
                payload["tenant_id"], payload["user_id"], module, action
            )
        except NotFound as e:
            raise HTTPException(status_code=401, detail="Unknown user") from e
        if not allowed:
            raise HTTPException(
                status_code=403,
                detail=f"Insufficient permissions for {module}:{action}",
            )
        return payload

    return _check_capability


async def _authenticate(email: str, password: str) -> dict[str, Any] | None:
    engine = await _get_engine()
    async with engine.begin() as conn:
        result = await conn.execute(
            text("""
                SELECT id, tenant_id, email, password_hash, role, status
                FROM users
                WHERE email = :email
            """),
            {"email": email},
        )
        user = result.first()
        if not user:
            return None

        user_data = dict(user._mapping)
        if user_data["status"] != "ACTIVE":
            return None
        if not bcrypt.checkpw(password.encode(), user_data["password_hash"].encode()):
            return None

        await conn.execute(
            text("UPDATE users SET last_login_at = now() WHERE id = :id"),
            {"id": str(user_data["id"])},
        )

    return {
        "user_id": str(user_data["id"]),
        "tenant_id": str(user_data["tenant_id"]),
        "email": user_data["email"],
        "role": user_data["role"],
    }


@router.post("/login")
async def login(login_data: LoginRequest, request: Request) -> dict[str, Any]:
    """Authenticate a user and return a JWT.

    Rate-limited: max 5 attempts per 15 minutes per IP+e-mail.
    """
    settings = get_settings()
    client_ip = request.client.host if request.client else "unknown"
    ttl_seconds = settings.auth.jwt_ttl_hours * 3600

    if await _check_rate_limit(client_ip, login_data.email):
        login_failures_total.inc()
        raise HTTPException(status_code=429, detail="Too many login attempts. Try again later.")

    user = await _authenticate(login_data.email, login_data.password)
    if user is None:
        login_failures_total.inc()
        logger.warning("Failed login from %s", client_ip)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_jwt(
        {
            "sub": user["email"],
            "user_id": user["user_id"],
            "tenant_id": user["tenant_id"],
            "role": user["role"],
        },
        settings.auth.jwt_secret,
        expires_in=ttl_seconds,
    )
    logger.info("User logged in", extra={"tenant_id": user["tenant_id"], "user_id": user["user_id"]})
    return {"token": token, "token_type": "bearer", "expires_in": ttl_seconds}


@router.post("/logout")
async def logout(request: Request) -> dict[str, str]:
    """Invalidate the current JWT via the Redis blacklist."""
    payload = await require_user(request)

    jti = payload.get("jti")
    if jti:
        settings = get_settings()
        await blacklist_token(jti, settings.auth.effective_blacklist_ttl)
        jwt_logouts_total.inc()
        logger.info("Token blacklisted: jti=%s user=%s", jti, payload.get("user_id"))

    return {"status": "logged_out"}
