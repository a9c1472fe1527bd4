"""Database package: shared engine, session factory, and Redis client."""

from sitegen.db.base import Base, close_db, get_session_factory, init_db, ping_database
from sitegen.db.redis import close_redis, get_redis, init_redis, ping_redis

__all__ = [
    "Base",
    "close_db",
    "close_redis",
    "get_redis",
    "get_session_factory",
    "init_db",
    "init_redis",
    "ping_database",
    "ping_redis",
]
