"""FastAPI application entrypoint for the Tripdesk itinerary service."""
from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from . import __version__
from .api import router as api_router
from .api.deps import get_db
from .constants import APP_NAME
from .database import init_db

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure process-wide logging once; later calls only adjust the level."""

    resolved = (level or os.getenv("TRIPDESK_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger().setLevel(resolved)


configure_logging()
init_db()


def create_application() -> FastAPI:
    app = FastAPI(title=f"{APP_NAME} API", version=__version__)
    app.include_router(api_router)

    @app.get("/health", tags=["health"], summary="Service healthcheck")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok", "message": f"{APP_NAME} API is running"}

    return app


app = create_application()

__all__ = ["app", "create_application", "configure_logging", "get_db"]
