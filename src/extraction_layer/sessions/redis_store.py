"""
Redis-backed session store.

Storage Strategy:
- Records: String per session, key = "session:{id}", JSON, with TTL
- Index: Sorted set "sessions:index" (score = last_activity epoch seconds)

The index lets ``cleanup`` find idle sessions with a single range query
instead of scanning every key. Entries whose record already expired via
TTL are pruned from the index on read.
"""

from datetime import timedelta
from typing import Optional

import structlog
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from extraction_layer.models.session_models import SessionRecord
from extraction_layer.models.timestamps import utc_now
from extraction_layer.monitoring.metrics import session_operations_total
from extraction_layer.sessions.exceptions import SessionStoreError
from extraction_layer.sessions.store import BaseSessionStore

logger = structlog.get_logger(__name__)


class RedisSessionStore(BaseSessionStore):
    """
    Session store over redis.asyncio.

    Redis failures are logged and re-raised as ``SessionStoreError``.
    """

    # Redis key prefixes
    SESSION_PREFIX = "session:"
    SESSIONS_INDEX = "sessions:index"

    def __init__(self, redis_client: AsyncRedis, ttl_seconds: int = 30 * 24 * 3600):
        """
        Initialize store.

        Args:
            redis_client: Async Redis client (decode_responses=True)
            ttl_seconds: Expiry applied to every record write
        """
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds

    def _key(self, session_id: str) -> str:
        return f"{self.SESSION_PREFIX}{session_id}"

    async def _read(self, session_id: str) -> Optional[SessionRecord]:
        try:
            payload = await self.redis.get(self._key(session_id))
        except RedisError as e:
            logger.error("Failed to read session", session_id=session_id, error=str(e), exc_info=True)
            raise SessionStoreError(f"Failed to read session {session_id}: {e}") from e

        if payload is None:
            logger.debug("Session not found", session_id=session_id)
            return None
        return SessionRecord.from_json(payload)

    async def _write(self, record: SessionRecord) -> None:
        try:
            await self.redis.setex(self._key(record.id), self.ttl_seconds, record.to_json())
            await self.redis.zadd(self.SESSIONS_INDEX, {record.id: record.metadata.last_activity.timestamp()})
        except RedisError as e:
            logger.error("Failed to save session", session_id=record.id, error=str(e), exc_info=True)
            raise SessionStoreError(f"Failed to save session {record.id}: {e}") from e

    async def _remove(self, session_id: str) -> bool:
        try:
            deleted = await self.redis.delete(self._key(session_id))
            await self.redis.zrem(self.SESSIONS_INDEX, session_id)
        except RedisError as e:
            logger.error("Failed to delete session", session_id=session_id, error=str(e), exc_info=True)
            raise SessionStoreError(f"Failed to delete session {session_id}: {e}") from e
        return bool(deleted)

    async def _read_all(self) -> list[SessionRecord]:
        try:
            session_ids = await self.redis.zrange(self.SESSIONS_INDEX, 0, -1)
            if not session_ids:
                return []
            payloads = await self.redis.mget([self._key(session_id) for session_id in session_ids])
        except RedisError as e:
            logger.error("Failed to list sessions", error=str(e), exc_info=True)
            raise SessionStoreError(f"Failed to list sessions: {e}") from e

        records = []
        expired = []
        for session_id, payload in zip(session_ids, payloads):
            if payload is None:
                expired.append(session_id)
            else:
                records.append(SessionRecord.from_json(payload))
        if expired:
            try:
                await self.redis.zrem(self.SESSIONS_INDEX, *expired)
            except RedisError as e:
                logger.warning("Failed to prune expired sessions from index", error=str(e))
            else:
                logger.debug("Pruned expired sessions from index", count=len(expired))
        return records

    async def cleanup(self, max_age_seconds: float) -> int:
        cutoff = (utc_now() - timedelta(seconds=max_age_seconds)).timestamp()
        try:
            stale_ids = await self.redis.zrangebyscore(self.SESSIONS_INDEX, "-inf", f"({cutoff}")
        except RedisError as e:
            session_operations_total.labels(operation="cleanup", outcome="error").inc()
            logger.error("Failed to query stale sessions", error=str(e), exc_info=True)
            raise SessionStoreError(f"Failed to clean up sessions: {e}") from e

        removed = 0
        for session_id in stale_ids:
            if await self._remove(session_id):
                removed += 1
        session_operations_total.labels(operation="cleanup", outcome="success").inc()
        logger.info("Session cleanup completed", removed=removed, max_age_seconds=max_age_seconds)
        return removed
