"""Main entry point for the gateway application."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI
from redis import asyncio as redis_asyncio
from sqlalchemy.orm import sessionmaker

from bridge_guard.api.dependencies import Guards, build_guards
from bridge_guard.api.errors import install_error_handlers
from bridge_guard.api.routes import build_router
from bridge_guard.core.settings import Settings, settings as default_settings
from bridge_guard.db.session import create_session_factory

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Set the root log level from configuration."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: sessionmaker | None = None,
    redis: Any = None,
) -> FastAPI:
    """Build the application with its guards and error handling installed.

    Store handles default to ones built from `settings`; tests pass their own.
    """
    settings = settings or default_settings
    if session_factory is None:
        session_factory = create_session_factory(settings.database_url, echo=settings.sql_debug)
    if redis is None:
        redis = redis_asyncio.from_url(settings.redis_url)

    guards: Guards = build_guards(settings, session_factory, redis)

    app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug)
    app.state.guards = guards
    install_error_handlers(app)
    app.include_router(build_router(guards))
    logger.debug("Created %s", settings.app_name)
    return app


if __name__ == "__main__":
    import uvicorn

    configure_logging(default_settings)
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
