from __future__ import annotations

import logging
from typing import Any, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import MutableHeaders
from starlette.exceptions import HTTPException as StarletteHTTPException

from .access import AccessMiddleware
from .config import AppConfig, load_config
from .container import AppContainer, build_app_container
from .errors import ApiError
from .lifecycle import app_lifespan
from .request_context import REQUEST_ID, resolve_request_id
from .routes import (
    announcement_routes,
    assignment_routes,
    auth_routes,
    chat_routes,
    class_routes,
    health_routes,
    user_routes,
)

_log = logging.getLogger(__name__)

_ROUTE_MODULES = (
    health_routes,
    auth_routes,
    user_routes,
    class_routes,
    announcement_routes,
    chat_routes,
    assignment_routes,
)


class RequestIdMiddleware:
    """Bind ``x-request-id`` (incoming or generated) for logs and echo it back."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):  # type: ignore[override]
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)
        incoming = None
        for key, value in scope.get("headers") or []:
            if key.lower() == b"x-request-id":
                incoming = value.decode("latin-1")
                break
        request_id = resolve_request_id(incoming)
        token = REQUEST_ID.set(request_id)

        async def send_with_id(message):
            if message.get("type") == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers["x-request-id"] = request_id
            await send(message)

        try:
            return await self.app(scope, receive, send_with_id)
        finally:
            REQUEST_ID.reset(token)


def _validation_fields(exc: RequestValidationError) -> List[str]:
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields.append(".".join(loc) or "body")
    return fields


def _install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        if exc.status_code >= 500:
            _log.error("request failed path=%s detail=%s", request.url.path, exc.detail, exc_info=exc)
            return JSONResponse({"error": "internal_error"}, status_code=exc.status_code)
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse({"error": "invalid_request", "fields": _validation_fields(exc)}, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        _log.error("unhandled error path=%s", request.url.path, exc_info=exc)
        return JSONResponse({"error": "internal_error"}, status_code=500)


def create_app(config: Optional[AppConfig] = None, *, container: Optional[AppContainer] = None) -> FastAPI:
    owns_database = container is None
    if container is None:
        container = build_app_container(config or load_config())

    app = FastAPI(title="ClassConnect API", version="1.0.0", lifespan=app_lifespan)
    app.state.container = container
    app.state.owns_database = owns_database

    # added innermost first: request id -> CORS -> access gate -> routes
    app.add_middleware(AccessMiddleware, verifier=container.tokens)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(container.config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-request-id"],
    )
    app.add_middleware(RequestIdMiddleware)

    _install_exception_handlers(app)
    for module in _ROUTE_MODULES:
        app.include_router(module.build_router(container))
    return app


def get_app() -> Any:
    """Factory entry point for ``uvicorn --factory``."""
    return create_app()
