"""
arogya_edge/routers/static.py — Front-end bundle and SPA fallback
Mounted at "/" after every API route. Files under the asset root are served
with Starlette's static semantics (ETag, Last-Modified, 304). Anything that
does not resolve to a file gets the entry document so the client-side
router can render the view.
"""
from __future__ import annotations

from pathlib import Path

from starlette.exceptions import HTTPException
from starlette.responses import Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

ENTRY_DOCUMENT = "index.html"


class SPAStaticFiles(StaticFiles):
    def __init__(self, directory: Path, entry_document: str = ENTRY_DOCUMENT) -> None:
        super().__init__(directory=directory, html=False)
        self.entry_document = entry_document

    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            return await super().get_response(path, scope)
        except HTTPException as exc:
            # 405 for non-GET/HEAD must stand; only misses fall back
            if exc.status_code != 404:
                raise
        return await super().get_response(self.entry_document, scope)
