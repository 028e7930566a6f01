"""
arogya_edge/core/logging.py — loguru structured JSON logging setup
Console only: stdout is collected by the hosting platform.
Credential values are never passed to any helper here; only presence flags.
"""
from __future__ import annotations

import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger


def setup_logging(log_level: str = "INFO") -> None:
    """Configure loguru for structured JSON output to stdout."""
    logger.remove()
    logger.add(
        sys.stdout,
        level=log_level.upper(),
        format="{message}",
        serialize=True,
        backtrace=True,
        diagnose=False,  # locals in tracebacks could include secrets
        colorize=False,
    )


def _build_log_record(
    component: str,
    operation: str,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build a base structured log record."""
    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "component": component,
        "operation": operation,
    }
    if extra:
        record.update(extra)
    return record


# ──────────────────────────────────────────────────────────────────────────────
# Event helpers
# ──────────────────────────────────────────────────────────────────────────────

def log_startup(
    environment: str,
    host: str,
    port: int,
    trust_proxy: bool,
    keys_present: dict[str, bool],
    global_limit: str,
    api_limit: str,
) -> None:
    record = _build_log_record("server", "startup", {
        "environment": environment,
        "host": host,
        "port": port,
        "trust_proxy": trust_proxy,
        "keys_present": keys_present,
        "global_rate_limit": global_limit,
        "api_rate_limit": api_limit,
    })
    logger.info(json.dumps(record))


def log_key_request(
    client: str,
    origin: Optional[str],
    keys_present: dict[str, bool],
) -> None:
    """Audit line for /api/keys. Booleans only."""
    record = _build_log_record("api", "keys_requested", {
        "client": client,
        "origin": origin,
        "keys_present": keys_present,
    })
    logger.info(json.dumps(record))


def log_origin_rejected(client: str, origin: Optional[str]) -> None:
    record = _build_log_record("api", "origin_rejected", {
        "client": client,
        "origin": origin,
    })
    logger.warning(json.dumps(record))


def log_rate_limited(tier: str, client: str, path: str) -> None:
    record = _build_log_record("rate_limiter", "limit_exceeded", {
        "tier": tier,
        "client": client,
        "path": path,
    })
    logger.warning(json.dumps(record))


def log_body_rejected(reason: str, path: str, declared_size: Optional[int] = None) -> None:
    record = _build_log_record("body_parser", "body_rejected", {
        "reason": reason,
        "path": path,
        "declared_size": declared_size,
    })
    logger.warning(json.dumps(record))


def log_error(
    component: str,
    operation: str,
    error: BaseException,
    context: Optional[dict[str, Any]] = None,
) -> None:
    """Every error is logged with its stack trace and context."""
    tb = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    record = _build_log_record(component, operation, {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "stack_trace": tb[:2000] if tb else "",
        "context": context or {},
    })
    logger.error(json.dumps(record))


def log_fatal(source: str, message: str, error: Optional[BaseException] = None) -> None:
    """Process-fatal fault; the supervisor exits right after this."""
    record = _build_log_record("supervisor", "fatal", {
        "source": source,
        "message": message,
        "error_type": type(error).__name__ if error else None,
        "error_message": str(error) if error else None,
    })
    if error is not None:
        tb = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        record["stack_trace"] = tb[:2000]
    logger.critical(json.dumps(record))
