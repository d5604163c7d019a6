"""Database layer - engine, base classes, types, and guards."""

from homebox_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from homebox_kernel.db.engine import (
    create_session_factory,
    create_store_engine,
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "init_engine_from_url",
    "create_store_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UTCDateTime",
    "UUID",
]
