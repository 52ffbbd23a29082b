"""Database module."""

from src.db.database import (
    async_session_maker,
    build_engine,
    build_session_maker,
    engine,
    get_db,
    init_db,
)

__all__ = [
    "async_session_maker",
    "build_engine",
    "build_session_maker",
    "engine",
    "get_db",
    "init_db",
]
