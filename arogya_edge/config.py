"""
arogya_edge/config.py — Pydantic BaseSettings configuration
One validated settings object, built once at startup and passed explicitly
to create_app(). Nothing below the app factory reads os.environ.
"""
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ──────────────────────────────────────────────────────────────────────────────
# Rate-limit presets
# Two deployed variants of this server exist; both are valid configurations.
# Values use the `limits` notation understood by limits.parse().
# ──────────────────────────────────────────────────────────────────────────────

RATE_LIMIT_PRESETS: dict[str, dict[str, str]] = {
    "standard": {
        "global": "100/15 minutes",
        "api": "10/minute",
    },
    "relaxed": {
        "global": "200/15 minutes",
        "api": "20/minute",
    },
}

MAX_BODY_BYTES = 10 * 1024 * 1024
# Resolved against the project root, not the working directory
DEFAULT_STATIC_DIR = Path(__file__).resolve().parent.parent / "public"
APP_VERSION = "1.0.0"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────────
    environment: str = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080
    app_version: str = APP_VERSION

    # Only enable behind a reverse proxy that rewrites X-Forwarded-For
    trust_proxy: bool = False

    # ── Provider credentials (distributed by /api/keys) ───────────────────────
    groq_api_key: str = Field(default="", repr=False)
    perplexity_api_key: str = Field(default="", repr=False)
    gemini_api_key: str = Field(default="", repr=False)

    # ── Origin allow-list for /api/keys ───────────────────────────────────────
    frontend_origin: str = "https://arogya-ai.vercel.app"
    # e.g. "vercel.app": any https://<sub>.vercel.app origin is accepted
    platform_domain: Optional[str] = None

    # ── Rate limiting ─────────────────────────────────────────────────────────
    rate_limit_preset: str = "standard"
    global_rate_limit: Optional[str] = None  # overrides the preset
    api_rate_limit: Optional[str] = None     # overrides the preset

    # ── Request / response shaping ────────────────────────────────────────────
    static_dir: Path = DEFAULT_STATIC_DIR
    max_body_bytes: int = Field(default=MAX_BODY_BYTES, gt=0)
    gzip_min_bytes: int = Field(default=1024, ge=0)

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        v = v.strip().lower()
        allowed = {"development", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("frontend_origin")
    @classmethod
    def validate_frontend_origin(cls, v: str) -> str:
        parts = urlsplit(v.strip())
        try:
            parts.port
        except ValueError:
            raise ValueError(f"frontend_origin has an invalid port: {v!r}") from None
        if parts.scheme.lower() not in {"http", "https"} or not parts.hostname or parts.username:
            raise ValueError(f"frontend_origin must be an http(s)://host origin, got {v!r}")
        return f"{parts.scheme.lower()}://{parts.netloc.lower()}"

    @field_validator("rate_limit_preset")
    @classmethod
    def validate_preset(cls, v: str) -> str:
        if v not in RATE_LIMIT_PRESETS:
            raise ValueError(f"rate_limit_preset must be one of {set(RATE_LIMIT_PRESETS)}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def global_rate_limit_value(self) -> str:
        return self.global_rate_limit or RATE_LIMIT_PRESETS[self.rate_limit_preset]["global"]

    @property
    def api_rate_limit_value(self) -> str:
        return self.api_rate_limit or RATE_LIMIT_PRESETS[self.rate_limit_preset]["api"]

    def credentials(self) -> "CredentialSet":
        return CredentialSet(
            groq=self.groq_api_key,
            perplexity=self.perplexity_api_key,
            gemini=self.gemini_api_key,
        )


class CredentialSet(BaseModel):
    """Read-only provider keys. Values never appear in repr or logs."""

    model_config = ConfigDict(frozen=True)

    groq: str = Field(default="", repr=False)
    perplexity: str = Field(default="", repr=False)
    gemini: str = Field(default="", repr=False)

    def presence(self) -> dict[str, bool]:
        return {
            "groq": bool(self.groq),
            "perplexity": bool(self.perplexity),
            "gemini": bool(self.gemini),
        }


def _env_file_for(environment: str) -> str:
    return ".env.production" if environment == "production" else ".env"


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance. Production reads .env.production."""
    environment = os.environ.get("ENVIRONMENT", "development").strip().lower()
    return Settings(_env_file=_env_file_for(environment))
