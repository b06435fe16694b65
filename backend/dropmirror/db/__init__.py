"""Database package for Dropmirror."""

from dropmirror.db.base import Base
from dropmirror.db.session import async_session_maker, dispose_db, engine, get_db, init_db

__all__ = [
    "Base",
    "async_session_maker",
    "dispose_db",
    "engine",
    "get_db",
    "init_db",
]
