"""
arogya_edge/server.py — Process supervisor and uvicorn entry point
Fail-fast boundary: any fault nothing else handled (an exception escaping
the server, or an unretrieved task exception on the event loop) is logged
and turned into a non-zero exit. An external process manager restarts us;
in-process state is never trusted after such a fault.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

import uvicorn
from loguru import logger

from arogya_edge.config import Settings
from arogya_edge.core import logging as app_logging
from arogya_edge.core.logging import setup_logging
from arogya_edge.main import create_app

EXIT_OK = 0
EXIT_FATAL = 1


class Supervisor:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.exit_code = EXIT_OK
        self._server: Optional[uvicorn.Server] = None

    def build_server(self) -> uvicorn.Server:
        config = uvicorn.Config(
            create_app(self.settings),
            host=self.settings.host,
            port=self.settings.port,
            # client identity honours X-Forwarded-For only via TRUST_PROXY
            proxy_headers=False,
            server_header=False,
            log_level=self.settings.log_level.lower(),
        )
        return uvicorn.Server(config)

    def handle_loop_fault(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        error = context.get("exception")
        app_logging.log_fatal("event_loop", context.get("message", "unhandled event loop fault"), error)
        self.signal_exit(EXIT_FATAL)

    def signal_exit(self, code: int) -> None:
        self.exit_code = max(self.exit_code, code)
        if self._server is not None:
            self._server.should_exit = True
            if code == EXIT_FATAL:
                # skip the graceful drain; in-process state is not trusted
                self._server.force_exit = True

    async def serve(self) -> None:
        asyncio.get_running_loop().set_exception_handler(self.handle_loop_fault)
        self._server = self.build_server()
        await self._server.serve()

    def run(self) -> int:
        setup_logging(self.settings.log_level)
        logger.info(f"Initializing Arogya AI server on {self.settings.host}:{self.settings.port} ({self.settings.environment})")
        try:
            asyncio.run(self.serve())
        except KeyboardInterrupt:
            logger.info("Interrupted.")
        except Exception as exc:
            app_logging.log_fatal("server", "server terminated by unhandled exception", exc)
            self.signal_exit(EXIT_FATAL)
        return self.exit_code
