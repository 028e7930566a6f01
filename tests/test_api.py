"""
tests/test_api.py — /api/health and /api/keys
"""
from __future__ import annotations

from datetime import datetime

import pytest

from arogya_edge.core import logging as app_logging

SECRETS = {
    "groq_api_key": "gsk_live_9f8e7d6c5b4a",
    "perplexity_api_key": "pplx-0123456789abcdef",
    "gemini_api_key": "AIzaSyTopSecretGeminiKey",
}


# ──────────────────────────────────────────────────────────────────────────────
# /api/health
# ──────────────────────────────────────────────────────────────────────────────

def test_health_returns_expected_fields(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["version"] == "1.0.0"
    assert body["environment"] == "development"
    assert isinstance(body["uptime"], float)
    assert body["uptime"] >= 0


def test_health_timestamp_is_iso_8601(client):
    body = client.get("/api/health").json()
    parsed = datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00"))
    assert parsed.tzinfo is not None


def test_health_ignores_request_headers(client):
    response = client.get(
        "/api/health",
        headers={"Origin": "https://evil.example.com", "Authorization": "Bearer nope", "Accept": "text/plain"},
    )
    assert response.status_code == 200


def test_health_reports_production_environment(make_client):
    client = make_client(environment="production")
    assert client.get("/api/health").json()["environment"] == "production"


# ──────────────────────────────────────────────────────────────────────────────
# /api/keys
# ──────────────────────────────────────────────────────────────────────────────

def test_keys_returns_configured_values(make_client):
    client = make_client(environment="production", **SECRETS)
    response = client.get("/api/keys", headers={"Origin": "https://arogya-ai.vercel.app"})
    assert response.status_code == 200
    assert response.json() == {
        "groq": SECRETS["groq_api_key"],
        "perplexity": SECRETS["perplexity_api_key"],
        "gemini": SECRETS["gemini_api_key"],
    }


def test_keys_missing_values_are_empty_strings(make_client):
    client = make_client(groq_api_key="gsk_only")
    response = client.get("/api/keys")
    assert response.status_code == 200
    assert response.json() == {"groq": "gsk_only", "perplexity": "", "gemini": ""}


@pytest.mark.parametrize("origin", [
    None,
    "https://evil.example.com",
    "http://localhost.evil.com",
    "https://arogya-ai.vercel.app.evil.com",
    "null",
])
def test_keys_rejects_unknown_origin_in_production(make_client, origin):
    client = make_client(environment="production", **SECRETS)
    headers = {"Origin": origin} if origin else {}
    response = client.get("/api/keys", headers=headers)
    assert response.status_code == 403
    assert response.json() == {"error": "Unauthorized origin"}


@pytest.mark.parametrize("origin", [
    "http://localhost:3000",
    "http://127.0.0.1:8080",
    "https://arogya-ai.vercel.app",
])
def test_keys_accepts_allowed_origins_in_production(make_client, origin):
    client = make_client(environment="production", **SECRETS)
    response = client.get("/api/keys", headers={"Origin": origin})
    assert response.status_code == 200


def test_keys_platform_domain_is_opt_in(make_client):
    origin = {"Origin": "https://arogya-preview-42.vercel.app"}
    strict = make_client(environment="production")
    assert strict.get("/api/keys", headers=origin).status_code == 403

    extended = make_client(environment="production", platform_domain="vercel.app")
    assert extended.get("/api/keys", headers=origin).status_code == 200


def test_keys_origin_not_checked_outside_production(make_client):
    client = make_client(environment="development", **SECRETS)
    response = client.get("/api/keys", headers={"Origin": "https://evil.example.com"})
    assert response.status_code == 200


def test_keys_audit_log_never_contains_secrets(make_client, log_messages):
    client = make_client(environment="production", **SECRETS)
    client.get("/api/keys", headers={"Origin": "http://localhost:3000"})
    client.get("/api/keys", headers={"Origin": "https://evil.example.com"})

    logged = "\n".join(log_messages)
    assert "keys_requested" in logged
    assert '"groq": true' in logged
    for secret in SECRETS.values():
        assert secret not in logged


def test_keys_audit_log_records_absent_keys(make_client, log_messages):
    client = make_client()
    client.get("/api/keys")
    logged = "\n".join(log_messages)
    assert '"gemini": false' in logged


def test_keys_internal_failure_is_contained(make_client, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("audit sink unavailable")

    monkeypatch.setattr(app_logging, "log_key_request", broken)
    client = make_client(**SECRETS)
    response = client.get("/api/keys")
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_keys_origin_check_failure_is_contained(make_client, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("audit sink unavailable")

    monkeypatch.setattr(app_logging, "log_origin_rejected", broken)
    client = make_client(environment="production", **SECRETS)
    response = client.get("/api/keys", headers={"Origin": "https://evil.example.com"})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
