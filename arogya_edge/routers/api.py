"""
arogya_edge/routers/api.py — JSON API endpoints
Endpoints: /api/health, /api/keys
Both sit behind the global and API rate-limit tiers; neither is exempt.
"""
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from arogya_edge.config import CredentialSet, Settings
from arogya_edge.core import logging as app_logging
from arogya_edge.core.auth import OriginPolicy
from arogya_edge.models import ErrorResponse, HealthResponse, KeysResponse

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# Dependencies: owned state lives on app.state, set by create_app()
# ──────────────────────────────────────────────────────────────────────────────

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_credentials(request: Request) -> CredentialSet:
    return request.app.state.credentials


def get_origin_policy(request: Request) -> OriginPolicy:
    return request.app.state.origin_policy


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ──────────────────────────────────────────────────────────────────────────────
# GET /api/health: liveness / readiness
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=_utc_timestamp(),
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
        version=settings.app_version,
        environment=settings.environment,
    )


# ──────────────────────────────────────────────────────────────────────────────
# GET /api/keys: hand provider keys to the trusted browser client
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/keys", response_model=KeysResponse)
async def get_keys(
    request: Request,
    origin: Optional[str] = Header(None),
    credentials: CredentialSet = Depends(get_credentials),
    origin_policy: OriginPolicy = Depends(get_origin_policy),
):
    """
    Returns the three provider keys; unset keys are empty strings.
    In production the Origin header must be on the allow-list.
    The audit line carries presence flags only, never the values.
    """
    client: Optional[str] = None
    try:
        client = request.app.state.rate_limiter.client_identity(request)

        if not origin_policy.admits(origin):
            app_logging.log_origin_rejected(client, origin)
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content=ErrorResponse(error="Unauthorized origin").model_dump(exclude_none=True),
            )

        keys = KeysResponse(
            groq=credentials.groq or "",
            perplexity=credentials.perplexity or "",
            gemini=credentials.gemini or "",
        )
        app_logging.log_key_request(client, origin, credentials.presence())
        return keys
    except Exception as exc:
        logger.error(f"Error serving API keys: {exc}")
        app_logging.log_error("api", "get_keys", exc, {"client": client})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Internal server error").model_dump(exclude_none=True),
        )
