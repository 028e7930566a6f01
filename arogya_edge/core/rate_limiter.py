"""
arogya_edge/core/rate_limiter.py — Two-tier per-client rate limiting
Tier "global" covers every path, tier "api" adds a stricter cap on /api/.
Counting is delegated to the `limits` fixed-window strategy (the engine
underneath slowapi) over one in-memory store owned by the limiter instance.
Counters are per process; horizontally scaled instances do not share them.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from limits import RateLimitItem, parse
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from arogya_edge.config import Settings
from arogya_edge.core import logging as app_logging
from arogya_edge.models import RateLimitErrorResponse

GLOBAL_TIER_MESSAGE = "Too many requests from this IP, please try again later."
API_TIER_MESSAGE = "Too many API requests, please slow down."


def describe_window(limit: RateLimitItem) -> str:
    """Human-readable window, e.g. "15 minutes" or "1 minute"."""
    unit = limit.GRANULARITY.name
    return f"{limit.multiples} {unit}{'s' if limit.multiples != 1 else ''}"


def client_identity(request: Request, trust_proxy: bool = False) -> str:
    """
    Rate-limit key for a request. The left-most X-Forwarded-For entry is only
    honoured when the server is explicitly configured to trust its proxy.
    """
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return get_remote_address(request)


@dataclass(frozen=True)
class RateLimitTier:
    name: str
    limit: RateLimitItem
    message: str
    path_prefix: str = "/"

    def applies_to(self, path: str) -> bool:
        return path.startswith(self.path_prefix)

    @property
    def window_seconds(self) -> int:
        return self.limit.get_expiry()

    @property
    def retry_after(self) -> str:
        return describe_window(self.limit)


@dataclass(frozen=True)
class TierDecision:
    tier: RateLimitTier
    allowed: bool
    remaining: int
    reset_at: float

    def headers(self, now: Optional[float] = None) -> dict[str, str]:
        now = time.time() if now is None else now
        reset_in = max(0, math.ceil(self.reset_at - now))
        headers = {
            "RateLimit-Policy": f"{self.tier.limit.amount};w={self.tier.window_seconds}",
            "RateLimit-Limit": str(self.tier.limit.amount),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(reset_in),
        }
        if not self.allowed:
            headers["Retry-After"] = str(reset_in)
        return headers


class TieredRateLimiter:
    """Owns the counter store; one instance per application."""

    def __init__(
        self,
        tiers: Iterable[RateLimitTier],
        trust_proxy: bool = False,
        storage: Optional[Storage] = None,
    ) -> None:
        self.tiers = tuple(tiers)
        self.trust_proxy = trust_proxy
        self._storage = storage or MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TieredRateLimiter":
        return cls(
            tiers=[
                RateLimitTier("global", parse(settings.global_rate_limit_value), GLOBAL_TIER_MESSAGE, "/"),
                RateLimitTier("api", parse(settings.api_rate_limit_value), API_TIER_MESSAGE, "/api/"),
            ],
            trust_proxy=settings.trust_proxy,
        )

    def client_identity(self, request: Request) -> str:
        return client_identity(request, self.trust_proxy)

    def check(self, tier: RateLimitTier, client: str) -> TierDecision:
        # test-then-hit keeps the stored count at or below the cap; nothing
        # awaits between the two calls so requests cannot interleave here
        allowed = self._strategy.test(tier.limit, tier.name, client)
        if allowed:
            self._strategy.hit(tier.limit, tier.name, client)
        stats = self._strategy.get_window_stats(tier.limit, tier.name, client)
        return TierDecision(
            tier=tier,
            allowed=allowed,
            remaining=max(0, stats.remaining),
            reset_at=stats.reset_time,
        )

    def evaluate(self, path: str, client: str) -> Optional[TierDecision]:
        """
        Run every applicable tier in order. Returns the first rejection, or the
        decision of the most specific (last) tier that admitted the request.
        """
        decision: Optional[TierDecision] = None
        for tier in self.tiers:
            if not tier.applies_to(path):
                continue
            decision = self.check(tier, client)
            if not decision.allowed:
                return decision
        return decision


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, limiter: TieredRateLimiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        client = self.limiter.client_identity(request)
        path = request.url.path
        decision = self.limiter.evaluate(path, client)
        if decision is None:
            return await call_next(request)

        if not decision.allowed:
            app_logging.log_rate_limited(decision.tier.name, client, path)
            body = RateLimitErrorResponse(error=decision.tier.message, retry_after=decision.tier.retry_after)
            return JSONResponse(
                status_code=429,
                content=body.model_dump(by_alias=True),
                headers=decision.headers(),
            )

        response = await call_next(request)
        response.headers.update(decision.headers())
        return response
