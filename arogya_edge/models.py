"""
arogya_edge/models.py — Pydantic response schemas
Every JSON body the server emits is one of these.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ──────────────────────────────────────────────────────────────────────────────
# Success payloads
# ──────────────────────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: str
    uptime: float
    version: str
    environment: str


class KeysResponse(BaseModel):
    groq: str = ""
    perplexity: str = ""
    gemini: str = ""


# ──────────────────────────────────────────────────────────────────────────────
# Error payloads: always carry an `error` field
# ──────────────────────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None


class RateLimitErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: str
    retry_after: str = Field(serialization_alias="retryAfter")
