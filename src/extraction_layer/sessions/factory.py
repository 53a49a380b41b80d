"""
Default session store selection from settings.
"""

import structlog

from extraction_layer.config import Settings
from extraction_layer.sessions.redis_client import get_async_redis_client
from extraction_layer.sessions.redis_store import RedisSessionStore
from extraction_layer.sessions.store import BaseSessionStore, FileSessionStore, InMemorySessionStore

logger = structlog.get_logger(__name__)

SESSION_BACKENDS = ("memory", "file", "redis")


def get_session_store(settings: Settings) -> BaseSessionStore:
    """
    Build the store named by ``SESSION_BACKEND``.

    Raises:
        ValueError: Unknown backend name
    """
    backend = settings.SESSION_BACKEND.lower()
    if backend == "memory":
        store = InMemorySessionStore()
    elif backend == "file":
        store = FileSessionStore(settings.SESSION_STORAGE_DIR)
    elif backend == "redis":
        store = RedisSessionStore(get_async_redis_client(settings), ttl_seconds=settings.SESSION_TTL_SECONDS)
    else:
        raise ValueError(
            f"Unknown SESSION_BACKEND '{settings.SESSION_BACKEND}'. Expected one of: {', '.join(SESSION_BACKENDS)}"
        )
    logger.debug("Session store selected", backend=backend)
    return store
