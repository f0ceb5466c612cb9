from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core_utils import iso

_log = logging.getLogger(__name__)


def build_router(core: Any) -> APIRouter:
    router = APIRouter(tags=["health"])

    @router.get("/ping")
    def ping() -> Any:
        return {"message": "pong", "status": "ok", "time": iso(core.clock())}

    @router.get("/health")
    def health() -> Any:
        error = core.database.ping()
        database = {"status": "ok" if error is None else "error", "error": error}
        payload = {
            "status": "ok" if error is None else "degraded",
            "time": iso(core.clock()),
            "database": database,
        }
        return JSONResponse(content=payload, status_code=200 if error is None else 503)

    return router
