"""Database engine shared by every service.

``DATABASE_URL`` selects the database and ``DATABASE_ECHO=1`` logs emitted SQL.
Services reach the engine through :func:`get_engine`, so swapping the module's
``engine`` attribute redirects all of them.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import create_engine

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg://cmms:cmms@db:5432/cmms")
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "0") == "1"


def build_engine(url: str = DATABASE_URL) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(url, echo=DATABASE_ECHO, connect_args={"check_same_thread": False})
    return create_engine(url, echo=DATABASE_ECHO, pool_pre_ping=True)


engine = build_engine()


def get_engine() -> Engine:
    return engine


def check_db_ready() -> bool:
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("database readiness check failed", exc_info=True)
        return False
    return True
