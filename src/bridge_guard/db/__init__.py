"""Database helpers."""

from .session import Base, create_session_factory, create_tables, drop_tables

__all__ = ["Base", "create_session_factory", "create_tables", "drop_tables"]
