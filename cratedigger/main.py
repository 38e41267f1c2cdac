"""Entry point for the cratedigger FastAPI application."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from cratedigger import __version__
from cratedigger.api import ROUTERS
from cratedigger.config import AppConfig
from cratedigger.db import init_db
from cratedigger.dependencies import get_app_config
from cratedigger.logging import configure_logging, get_logger
from cratedigger.logging_events import log_event
from cratedigger.middleware import install_middleware

logger = get_logger(__name__)


def _configure_application(config: AppConfig) -> None:
    configure_logging(config.logging.level, config.logging.log_file)
    # Missing catalog credentials abort startup instead of failing every batch.
    config.spotify.require_credentials()
    init_db()
    logger.info("Database initialised")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config = get_app_config()
    _configure_application(config)
    app.state.config_snapshot = config
    log_event(
        logger,
        "app.started",
        version=__version__,
        admin_role=config.security.admin_role,
        genre_fallback=config.imports.genre_fallback,
    )
    try:
        yield
    finally:
        logger.info("cratedigger application stopped")


def create_app(config: AppConfig | None = None) -> FastAPI:
    config = config or get_app_config()
    application = FastAPI(title="cratedigger", version=__version__, lifespan=lifespan)
    install_middleware(application, config)
    for router in ROUTERS:
        application.include_router(router)
    return application


app = create_app()


def main() -> None:  # pragma: no cover - manual entry
    import uvicorn

    uvicorn.run("cratedigger.main:app", host="0.0.0.0", port=8080)


if __name__ == "__main__":  # pragma: no cover
    main()
