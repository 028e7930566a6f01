"""
tests/conftest.py — Shared pytest fixtures
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from loguru import logger

from arogya_edge.config import Settings
from arogya_edge.main import create_app

INDEX_HTML = b"<!DOCTYPE html><html><head><title>Arogya AI</title></head><body><div id=\"app\"></div></body></html>\n"
APP_JS = b"console.log('arogya');\n"
# Comfortably above the 1024-byte gzip threshold
BIG_CSS = b"".join(b".rule-%d { color: #%06x; }\n" % (i, i) for i in range(300))


@pytest.fixture
def static_dir(tmp_path: Path) -> Path:
    root = tmp_path / "public"
    (root / "assets").mkdir(parents=True)
    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "assets" / "app.js").write_bytes(APP_JS)
    (root / "assets" / "big.css").write_bytes(BIG_CSS)
    return root


@pytest.fixture
def make_settings(static_dir: Path) -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {"static_dir": static_dir, "environment": "development"}
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def make_client(make_settings) -> Callable[..., TestClient]:
    def _make(raise_server_exceptions: bool = True, **overrides: Any) -> TestClient:
        return TestClient(create_app(make_settings(**overrides)), raise_server_exceptions=raise_server_exceptions)
    return _make


@pytest.fixture
def app(make_settings) -> FastAPI:
    return create_app(make_settings())


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def log_messages():
    """Everything loguru emits while the test runs."""
    messages: list[str] = []
    handler_id = logger.add(messages.append, format="{message}", level="DEBUG")
    yield messages
    logger.remove(handler_id)
