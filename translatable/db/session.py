# File: translatable/db/session.py
"""
Database engine and session management.

SQLite connections get foreign key enforcement (needed for cascading deletes
of translation rows) and explicit BEGIN handling so that savepoints and
transactional DDL behave the same way they do on server databases.
"""

import logging
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from translatable.core.config import settings

logger = logging.getLogger(__name__)


def _configure_sqlite(engine: Engine) -> None:
    """Apply SQLite connection settings and transaction handling."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy, not the driver, decide when transactions begin
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL (defaults to DATABASE_URL).

    In-memory SQLite databases share one connection so that every session
    sees the same schema.

    Args:
        url: SQLAlchemy database URL
        echo: Log emitted SQL

    Returns:
        SQLAlchemy engine
    """
    db_url = url or settings.DATABASE_URL

    if db_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(db_url, echo=echo, **kwargs)
        _configure_sqlite(engine)
    else:
        engine = create_engine(db_url, echo=echo, pool_pre_ping=True)

    logger.info(f"Using database: {engine.url.render_as_string(hide_password=True)}")
    return engine


def get_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autoflush=False, bind=engine)
