"""
Session persistence and coordination.

Components:
- SessionStore protocol with memory, file and Redis backends
- get_session_store: backend selection from settings
- SessionCoordinator: resolves the session a run executes in
"""

from extraction_layer.sessions.coordinator import SessionCoordination, SessionCoordinator
from extraction_layer.sessions.exceptions import SessionNotFoundError, SessionStoreError
from extraction_layer.sessions.factory import get_session_store
from extraction_layer.sessions.redis_client import RedisClient, get_async_redis_client
from extraction_layer.sessions.redis_store import RedisSessionStore
from extraction_layer.sessions.store import (
    BaseSessionStore,
    FileSessionStore,
    InMemorySessionStore,
    SessionStore,
)

__all__ = [
    "SessionStore",
    "BaseSessionStore",
    "InMemorySessionStore",
    "FileSessionStore",
    "RedisSessionStore",
    "RedisClient",
    "get_async_redis_client",
    "get_session_store",
    "SessionCoordinator",
    "SessionCoordination",
    "SessionNotFoundError",
    "SessionStoreError",
]
