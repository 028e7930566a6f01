"""
tests/test_security_headers.py — Response header policy
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from arogya_edge.core.security import SecurityPolicy


def _assert_policy_headers(headers):
    assert headers["Strict-Transport-Security"] == "max-age=31536000; includeSubDomains; preload"
    assert headers["X-Frame-Options"] == "DENY"
    assert headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert headers["Cross-Origin-Opener-Policy"] == "same-origin"
    assert headers["Cross-Origin-Resource-Policy"] == "cross-origin"
    assert headers["X-Content-Type-Options"] == "nosniff"
    assert "Content-Security-Policy" in headers
    assert "Cross-Origin-Embedder-Policy" not in headers


@pytest.mark.parametrize("path", ["/", "/assets/app.js", "/api/health", "/api/keys", "/deep/client/route"])
def test_headers_on_successful_responses(client, path):
    response = client.get(path)
    assert response.status_code == 200
    _assert_policy_headers(response.headers)


def test_headers_on_rate_limited_responses(make_client):
    client = make_client(api_rate_limit="1/minute")
    client.get("/api/health")
    response = client.get("/api/health")
    assert response.status_code == 429
    _assert_policy_headers(response.headers)


def test_headers_on_forbidden_keys_response(make_client):
    client = make_client(environment="production")
    response = client.get("/api/keys", headers={"Origin": "https://evil.example.com"})
    assert response.status_code == 403
    _assert_policy_headers(response.headers)


def test_csp_allow_lists(client):
    csp = client.get("/").headers["Content-Security-Policy"]
    directives = {part.split(" ", 1)[0]: part for part in csp.split("; ")}
    assert directives["default-src"] == "default-src 'self'"
    assert directives["connect-src"] == (
        "connect-src 'self' https://api.groq.com https://api.perplexity.ai "
        "https://generativelanguage.googleapis.com"
    )
    assert "https://cdn.jsdelivr.net" in directives["script-src"]
    assert "https://fonts.googleapis.com" in directives["style-src"]
    assert "https://fonts.gstatic.com" in directives["font-src"]
    assert directives["object-src"] == "object-src 'none'"
    assert directives["frame-src"] == "frame-src 'none'"
    assert directives["frame-ancestors"] == "frame-ancestors 'none'"


def test_upgrade_insecure_requests_only_in_production(make_settings):
    dev = SecurityPolicy.from_settings(make_settings(environment="development"))
    prod = SecurityPolicy.from_settings(make_settings(environment="production"))
    assert "upgrade-insecure-requests" not in dev.content_security_policy()
    assert prod.content_security_policy().endswith("; upgrade-insecure-requests")


def test_policy_is_immutable(make_settings):
    policy = SecurityPolicy.from_settings(make_settings())
    with pytest.raises(ValidationError):
        policy.frame_options = "SAMEORIGIN"
