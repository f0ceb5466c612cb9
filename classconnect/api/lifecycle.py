from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from .logging_config import configure_logging

_log = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app):
    configure_logging()
    container = app.state.container
    container.database.create_all()
    _log.info(
        "classconnect api started env=%s database=%s",
        container.config.app_env,
        container.database.engine.url.render_as_string(hide_password=True),
    )
    try:
        yield
    finally:
        if getattr(app.state, "owns_database", False):
            try:
                container.database.dispose()
            except Exception:
                _log.error("database shutdown error", exc_info=True)
