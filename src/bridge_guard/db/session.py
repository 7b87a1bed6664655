"""Database session configuration."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


def create_session_factory(
    database_url: str,
    *,
    echo: bool = False,
    **engine_kwargs: object,
) -> sessionmaker:
    """Build an engine for `database_url` and return a bound session factory."""
    engine = create_engine(database_url, pool_pre_ping=True, echo=echo, **engine_kwargs)
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def create_tables(engine: Engine) -> None:
    """Create all database tables."""
    # Ensure model modules are imported so that metadata is populated.
    import bridge_guard.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_tables(engine: Engine) -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)
