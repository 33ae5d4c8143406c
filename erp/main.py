"""SmartFlux ERP settings service: application entry point."""

import asyncio
import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from redis.asyncio import Redis

from erp.api.auth import router as auth_router
from erp.api.middleware.audit import AuditMiddleware
from erp.api.middleware.security_headers import SecurityHeadersMiddleware
from erp.api.settings import router as settings_router
from erp.config import Settings, get_settings
from erp.logging.structured_logger import setup_logging
from erp.monitoring.metrics import get_metrics

logger = logging.getLogger(__name__)

app = FastAPI(
    title="SmartFlux ERP",
    description="Tenant settings and permission resolution",
    version="0.1.0",
)
app.include_router(auth_router)
app.include_router(settings_router)
# Middleware order (last added = outermost = runs first):
# SecurityHeaders → CORS → Audit
app.add_middleware(AuditMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().server.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(SecurityHeadersMiddleware)

_redis: Redis | None = None


@app.get("/health")
async def health_check() -> dict[str, object]:
    """Health check endpoint."""
    redis_ok = False
    if _redis is not None:
        try:
            await _redis.ping()
            redis_ok = True
        except Exception:
            logger.debug("Redis ping failed", exc_info=True)

    return {
        "status": "ok",
        "redis": "connected" if redis_ok else "disconnected",
    }


@app.get("/metrics")
async def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=get_metrics(), media_type="text/plain; charset=utf-8")


async def start_api_server(settings: Settings) -> None:
    config = uvicorn.Config(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.logging.level.lower(),
    )
    server = uvicorn.Server(config)
    await server.serve()


async def main() -> None:
    """Main application entry point."""
    global _redis

    settings = get_settings()
    setup_logging(settings.logging.level, settings.logging.format)

    validation = settings.validate_required()
    for error in validation.errors:
        logger.warning("Config %s: %s (%s)", error.field, error.message, error.hint)

    _redis = Redis.from_url(settings.redis.url, decode_responses=True)

    logger.info("SmartFlux ERP starting on %s:%d", settings.server.host, settings.server.port)
    try:
        await start_api_server(settings)
    finally:
        await _redis.aclose()
        logger.info("Redis connection closed")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(0)
