"""Database layer - engine, session scope, declarative base."""

from procurement_kernel.db.base import UUID, Base, UUIDString
from procurement_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "build_engine",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "UUIDString",
    "UUID",
]
