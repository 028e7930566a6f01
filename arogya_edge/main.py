"""
arogya_edge/main.py — FastAPI application factory
Builds the request pipeline, outermost first:
  body parser → security headers → rate limiter → gzip → router
and the terminal error handler that catches anything the stages let through.
All owned state (settings, credentials, limiter, policies) is attached to
app.state here; nothing is read from the environment after this point.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from arogya_edge.config import Settings, get_settings
from arogya_edge.core import logging as app_logging
from arogya_edge.core.auth import OriginPolicy
from arogya_edge.core.body import BodyParserMiddleware
from arogya_edge.core.rate_limiter import RateLimitMiddleware, TieredRateLimiter
from arogya_edge.core.security import SecurityHeadersMiddleware, SecurityPolicy, apply_security_headers
from arogya_edge.models import ErrorResponse
from arogya_edge.routers import api
from arogya_edge.routers.static import SPAStaticFiles


# ──────────────────────────────────────────────────────────────────────────────
# Application Lifespan
# ──────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    credentials = app.state.credentials
    logger.info("Arogya AI edge server starting up...")
    app_logging.log_startup(
        environment=settings.environment,
        host=settings.host,
        port=settings.port,
        trust_proxy=settings.trust_proxy,
        keys_present=credentials.presence(),
        global_limit=settings.global_rate_limit_value,
        api_limit=settings.api_rate_limit_value,
    )
    missing = [name for name, present in credentials.presence().items() if not present]
    if missing:
        # Not fatal: /api/keys returns empty strings for unset keys
        logger.warning(f"Provider keys not configured: {', '.join(missing)}")
    yield
    logger.info("Shutting down Arogya AI edge server.")


# ──────────────────────────────────────────────────────────────────────────────
# Error handlers
# ──────────────────────────────────────────────────────────────────────────────

async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


async def terminal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last stage: runs in Starlette's server-error layer, outside every other
    middleware, so it re-applies the security headers itself.
    """
    settings: Settings = request.app.state.settings
    app_logging.log_error(
        "server",
        "unhandled_request_error",
        exc,
        {"method": request.method, "path": request.url.path},
    )
    body = ErrorResponse(
        error="Internal server error",
        message="Something went wrong" if settings.is_production else str(exc),
    )
    response = JSONResponse(status_code=500, content=body.model_dump())
    apply_security_headers(response.headers, request.app.state.security_policy.headers())
    return response


# ──────────────────────────────────────────────────────────────────────────────
# Factory
# ──────────────────────────────────────────────────────────────────────────────

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Arogya AI Edge Server",
        description="Static SPA host with health check and provider key distribution.",
        version=settings.app_version,
        # The SPA owns every non-API path
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    security_policy = SecurityPolicy.from_settings(settings)
    rate_limiter = TieredRateLimiter.from_settings(settings)

    app.state.settings = settings
    app.state.credentials = settings.credentials()
    app.state.security_policy = security_policy
    app.state.origin_policy = OriginPolicy.from_settings(settings)
    app.state.rate_limiter = rate_limiter
    app.state.started_at = time.monotonic()

    # ── Error handling ────────────────────────────────────────────────────────
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, terminal_error_handler)

    # ── Pipeline: add_middleware wraps, so the last one added runs first ─────
    app.add_middleware(GZipMiddleware, minimum_size=settings.gzip_min_bytes)
    app.add_middleware(RateLimitMiddleware, limiter=rate_limiter)
    app.add_middleware(SecurityHeadersMiddleware, policy=security_policy)
    app.add_middleware(
        BodyParserMiddleware,
        max_body_bytes=settings.max_body_bytes,
        response_headers=security_policy.headers(),
    )

    # ── Routes: the static catch-all must come last ──────────────────────────
    app.include_router(api.router, prefix="/api", tags=["api"])
    app.mount("/", SPAStaticFiles(directory=settings.static_dir), name="spa")

    return app
