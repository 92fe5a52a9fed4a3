from .base import Base
from .session import AsyncSessionLocal, async_engine, get_session_factory, init_db

__all__ = [
    "Base",
    "AsyncSessionLocal",
    "async_engine",
    "get_session_factory",
    "init_db",
]
