"""
arogya_edge/core/security.py — Response security header policy
A fixed, process-wide header set attached to every response. The policy is
built once from settings and never mutated; it never blocks a request.
"""
from __future__ import annotations

from typing import MutableMapping

from fastapi import Request, Response
from pydantic import BaseModel, ConfigDict
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from arogya_edge.config import Settings

SELF = "'self'"
NONE = "'none'"

SCRIPT_CDNS = (
    "https://cdnjs.cloudflare.com",
    "https://unpkg.com",
    "https://cdn.jsdelivr.net",
)
STYLE_CDNS = (
    "https://cdnjs.cloudflare.com",
    "https://fonts.googleapis.com",
)
FONT_CDNS = (
    "https://cdnjs.cloudflare.com",
    "https://fonts.gstatic.com",
)
# The browser client calls these providers directly with keys from /api/keys
PROVIDER_API_ORIGINS = (
    "https://api.groq.com",
    "https://api.perplexity.ai",
    "https://generativelanguage.googleapis.com",
)


class SecurityPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    csp_directives: tuple[tuple[str, tuple[str, ...]], ...]
    upgrade_insecure_requests: bool = False
    hsts_max_age: int = 31536000
    hsts_include_subdomains: bool = True
    hsts_preload: bool = True
    frame_options: str = "DENY"
    referrer_policy: str = "strict-origin-when-cross-origin"
    cross_origin_opener_policy: str = "same-origin"
    cross_origin_resource_policy: str = "cross-origin"

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecurityPolicy":
        directives = (
            ("default-src", (SELF,)),
            ("script-src", (SELF, "'unsafe-inline'", "'unsafe-eval'", "'unsafe-hashes'", *SCRIPT_CDNS)),
            ("script-src-attr", ("'unsafe-inline'", "'unsafe-hashes'")),
            ("style-src", (SELF, "'unsafe-inline'", *STYLE_CDNS)),
            ("img-src", (SELF, "data:")),
            ("connect-src", (SELF, *PROVIDER_API_ORIGINS)),
            ("font-src", (SELF, *FONT_CDNS)),
            ("object-src", (NONE,)),
            ("media-src", (SELF,)),
            ("frame-src", (NONE,)),
            ("frame-ancestors", (NONE,)),
            ("form-action", (SELF,)),
            ("base-uri", (SELF,)),
            ("manifest-src", (SELF,)),
        )
        # Local development runs over plain http
        return cls(csp_directives=directives, upgrade_insecure_requests=settings.is_production)

    def content_security_policy(self) -> str:
        parts = [f"{name} {' '.join(sources)}" for name, sources in self.csp_directives]
        if self.upgrade_insecure_requests:
            parts.append("upgrade-insecure-requests")
        return "; ".join(parts)

    def strict_transport_security(self) -> str:
        value = f"max-age={self.hsts_max_age}"
        if self.hsts_include_subdomains:
            value += "; includeSubDomains"
        if self.hsts_preload:
            value += "; preload"
        return value

    def headers(self) -> dict[str, str]:
        return {
            "Content-Security-Policy": self.content_security_policy(),
            "Strict-Transport-Security": self.strict_transport_security(),
            "X-Frame-Options": self.frame_options,
            "Referrer-Policy": self.referrer_policy,
            "Cross-Origin-Opener-Policy": self.cross_origin_opener_policy,
            "Cross-Origin-Resource-Policy": self.cross_origin_resource_policy,
            "Origin-Agent-Cluster": "?1",
            "X-Content-Type-Options": "nosniff",
            "X-XSS-Protection": "1; mode=block",
            "X-DNS-Prefetch-Control": "off",
            "X-Permitted-Cross-Domain-Policies": "none",
        }


def apply_security_headers(headers: MutableMapping[str, str], policy_headers: dict[str, str]) -> None:
    for name, value in policy_headers.items():
        headers[name] = value


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, policy: SecurityPolicy) -> None:
        super().__init__(app)
        # Rendered once; the policy is immutable
        self._headers = policy.headers()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        apply_security_headers(response.headers, self._headers)
        return response
