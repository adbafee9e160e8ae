"""Database configuration and session management for Tripdesk."""
from __future__ import annotations

import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tripdesk.db")


def _build_engine(url: str) -> Engine:
    """Create the SQLAlchemy engine with backend-specific tuning."""

    engine_kwargs = {"future": True, "echo": False}
    dialect = make_url(url).get_backend_name()

    if dialect == "sqlite":
        # FastAPI runs sync handlers in a thread pool.
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    else:
        engine_kwargs["pool_pre_ping"] = True

    return create_engine(url, **engine_kwargs)


engine = _build_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables on the given engine (defaults to the configured one)."""

    target = bind or engine
    logger.info("Ensuring schema on %s", target.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=target)
