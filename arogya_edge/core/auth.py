"""
arogya_edge/core/auth.py — Origin allow-list for credential distribution
There are no user accounts; the only authorization decision is whether a
browser Origin may receive the provider keys. Enforced in production only.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict

from arogya_edge.config import Settings

LOCALHOST_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
ALLOWED_SCHEMES = frozenset({"http", "https"})


def _hostname(value: str) -> Optional[str]:
    try:
        parts = urlsplit(value.strip())
        # .port raises ValueError on a malformed port
        parts.port
    except ValueError:
        return None
    if parts.scheme not in ALLOWED_SCHEMES or not parts.hostname:
        return None
    return parts.hostname


class OriginPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    enforce: bool
    frontend_host: Optional[str] = None
    platform_domain: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "OriginPolicy":
        platform = (settings.platform_domain or "").strip().lower().lstrip(".") or None
        return cls(
            enforce=settings.is_production,
            frontend_host=_hostname(settings.frontend_origin),
            platform_domain=platform,
        )

    def is_allowed(self, origin: Optional[str]) -> bool:
        """
        Exact hostname comparison; "http://localhost.evil.com" is not localhost.
        A missing or unparseable Origin is never allowed.
        """
        if not origin:
            return False
        host = _hostname(origin)
        if host is None:
            return False
        if host in LOCALHOST_HOSTS:
            return True
        if self.frontend_host and host == self.frontend_host:
            return True
        if self.platform_domain and urlsplit(origin.strip()).scheme == "https":
            return host.endswith("." + self.platform_domain)
        return False

    def admits(self, origin: Optional[str]) -> bool:
        return not self.enforce or self.is_allowed(origin)
