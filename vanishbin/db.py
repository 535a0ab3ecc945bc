from __future__ import annotations

import typing as t

from flask import Flask
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


Base = declarative_base()

_engine: Engine | None = None
SessionLocal: sessionmaker = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def get_engine() -> Engine:
    """
    Return the global SQLAlchemy engine.

    This expects that ``init_db(app)`` has been called during application
    startup to configure the engine from Flask config.
    """
    if _engine is None:  # type: ignore[truthy-function]
        raise RuntimeError("Database engine is not initialized. Call init_db(app) first.")
    return t.cast(Engine, _engine)


def build_engine(database_uri: str, *, echo: bool = False) -> Engine:
    """
    Create an engine for ``database_uri``.

    In-memory SQLite databases share a single connection across threads so
    the request handlers and the sweep worker see the same data.
    """
    if database_uri.startswith("sqlite") and ":memory:" in database_uri:
        return create_engine(
            database_uri,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_uri, echo=echo, pool_pre_ping=True)


def init_db(app: Flask) -> Engine:
    """
    Initialize the SQLAlchemy engine and session factory for the Flask app.

    Reads the database URL from ``app.config['SQLALCHEMY_DATABASE_URI']``.
    When ``AUTO_CREATE_SCHEMA`` is set the tables are created directly
    instead of through Alembic.
    """
    global _engine

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if not database_uri:
        raise RuntimeError(
            "SQLALCHEMY_DATABASE_URI is not configured on the Flask app."
        )

    _engine = build_engine(
        database_uri,
        echo=app.config.get("SQLALCHEMY_ECHO", False),
    )
    SessionLocal.configure(bind=_engine)

    if app.config.get("AUTO_CREATE_SCHEMA", False):
        # Import models so that Base.metadata is populated.
        from vanishbin.domain import models as _models  # noqa: F401

        Base.metadata.create_all(_engine)

    return _engine
