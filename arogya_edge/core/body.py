"""
arogya_edge/core/body.py — Request body ceiling and payload decoding
Outermost pipeline stage. The body is buffered up to the ceiling before the
rest of the pipeline runs, so oversized or malformed payloads are answered
here and never reach a route handler.

JSON and URL-encoded bodies are decoded into request.state.body; every
buffered body is replayed downstream unchanged.
"""
from __future__ import annotations

import json
from typing import Any, Optional
from urllib.parse import parse_qs

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from arogya_edge.core import logging as app_logging
from arogya_edge.core.security import apply_security_headers
from arogya_edge.models import ErrorResponse

JSON_TYPES = {"application/json"}
FORM_TYPES = {"application/x-www-form-urlencoded"}

PAYLOAD_TOO_LARGE = "Payload too large"
MALFORMED_BODY = "Malformed request body"


class BodyTooLarge(Exception):
    pass


def decode_body(content_type: str, raw: bytes) -> Any:
    """Decode a buffered body. Raises ValueError on malformed input."""
    if not raw:
        return None
    if content_type in JSON_TYPES:
        return json.loads(raw.decode("utf-8"))
    # Repeated keys keep every value, single keys collapse to a scalar
    text = raw.decode("utf-8")
    parsed = parse_qs(text, keep_blank_values=True)
    return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}


class BodyParserMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        max_body_bytes: int,
        response_headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes
        self.response_headers = response_headers or {}

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        path = scope.get("path", "")

        declared = headers.get("content-length")
        if declared is not None:
            try:
                declared_size = int(declared)
            except ValueError:
                app_logging.log_body_rejected("invalid_content_length", path)
                await self._reject(scope, receive, send, status.HTTP_400_BAD_REQUEST, "Invalid Content-Length header")
                return
            if declared_size > self.max_body_bytes:
                app_logging.log_body_rejected("too_large", path, declared_size)
                await self._reject(scope, receive, send, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, PAYLOAD_TOO_LARGE)
                return

        # Chunked uploads carry no Content-Length; the byte count is enforced here
        try:
            raw = await self._read_body(receive)
        except BodyTooLarge:
            app_logging.log_body_rejected("too_large", path)
            await self._reject(scope, receive, send, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, PAYLOAD_TOO_LARGE)
            return

        content_type = headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type in JSON_TYPES | FORM_TYPES:
            try:
                parsed = decode_body(content_type, raw)
            except ValueError:
                # JSONDecodeError and UnicodeDecodeError are both ValueErrors
                app_logging.log_body_rejected("malformed", path)
                await self._reject(scope, receive, send, status.HTTP_400_BAD_REQUEST, MALFORMED_BODY)
                return
            scope.setdefault("state", {})["body"] = parsed

        await self.app(scope, self._replay(raw, receive), send)

    async def _read_body(self, receive: Receive) -> bytes:
        chunks: list[bytes] = []
        received = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
            chunk = message.get("body", b"")
            received += len(chunk)
            if received > self.max_body_bytes:
                raise BodyTooLarge()
            chunks.append(chunk)
            more_body = message.get("more_body", False)
        return b"".join(chunks)

    @staticmethod
    def _replay(raw: bytes, receive: Receive) -> Receive:
        delivered = False

        async def replay_receive() -> Message:
            nonlocal delivered
            if not delivered:
                delivered = True
                return {"type": "http.request", "body": raw, "more_body": False}
            return await receive()

        return replay_receive

    async def _reject(self, scope: Scope, receive: Receive, send: Send, status_code: int, error: str) -> None:
        response = JSONResponse(
            status_code=status_code,
            content=ErrorResponse(error=error).model_dump(exclude_none=True),
        )
        apply_security_headers(response.headers, self.response_headers)
        await response(scope, receive, send)
