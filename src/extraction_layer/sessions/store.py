"""
Session store capability and its in-process backends.

Storage Strategy:
- InMemorySessionStore: dict keyed by session id (single process, lost on exit)
- FileSessionStore: one JSON document per session, "<dir>/<id>.json"
- RedisSessionStore (see redis_store): shared across processes

All backends share the record semantics implemented in ``BaseSessionStore``:
ids are immutable, ``updated_at`` moves on every update, metadata patches
are merged, and concurrent writers follow last-writer-wins.
"""

import asyncio
import os
import re
import uuid
from abc import ABC, abstractmethod
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional, Protocol, Union

import structlog

from extraction_layer.models.session_models import (
    SessionFilter,
    SessionMetadata,
    SessionRecord,
    SessionStats,
)
from extraction_layer.models.timestamps import utc_now
from extraction_layer.monitoring.metrics import session_operations_total
from extraction_layer.sessions.exceptions import SessionNotFoundError, SessionStoreError

logger = structlog.get_logger(__name__)

MetadataInput = Union[SessionMetadata, dict[str, Any], None]

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class SessionStore(Protocol):
    """Capability consumed by the session coordinator and the retry engine."""

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        ...

    async def create(
        self,
        context: Optional[str] = None,
        metadata: MetadataInput = None,
        provider_data: Optional[dict[str, Any]] = None,
    ) -> SessionRecord:
        ...

    async def update(self, session_id: str, patch: dict[str, Any]) -> SessionRecord:
        ...

    async def delete(self, session_id: str) -> bool:
        ...

    async def list_sessions(self, session_filter: Optional[SessionFilter] = None) -> list[SessionRecord]:
        ...

    async def cleanup(self, max_age_seconds: float) -> int:
        ...

    async def get_stats(self) -> SessionStats:
        ...


def _metadata_dict(metadata: MetadataInput) -> dict[str, Any]:
    if metadata is None:
        return {}
    if isinstance(metadata, SessionMetadata):
        return metadata.model_dump(exclude_unset=True)
    return dict(metadata)


def apply_patch(record: SessionRecord, patch: dict[str, Any]) -> SessionRecord:
    """
    Apply an update patch to a record.

    - ``id`` and ``created_at`` in the patch are ignored
    - ``context`` replaces the stored context
    - ``provider_data`` and ``metadata`` are merged key by key
    - ``metadata.last_activity`` is refreshed unless the patch sets it
    """
    now = utc_now()
    metadata = record.metadata.model_dump()
    metadata.update(_metadata_dict(patch.get("metadata")))
    if "last_activity" not in _metadata_dict(patch.get("metadata")):
        metadata["last_activity"] = now

    provider_data = dict(record.provider_data)
    provider_data.update(patch.get("provider_data") or {})

    return SessionRecord(
        id=record.id,
        created_at=record.created_at,
        updated_at=now,
        context=patch["context"] if "context" in patch else record.context,
        provider_data=provider_data,
        metadata=SessionMetadata.model_validate(metadata),
    )


def _matches(record: SessionRecord, session_filter: SessionFilter) -> bool:
    metadata = record.metadata
    if session_filter.provider is not None and metadata.provider != session_filter.provider:
        return False
    if session_filter.model is not None and metadata.model != session_filter.model:
        return False
    if session_filter.active is not None and metadata.active != session_filter.active:
        return False
    if session_filter.created_after is not None and record.created_at < session_filter.created_after:
        return False
    if session_filter.created_before is not None and record.created_at > session_filter.created_before:
        return False
    if session_filter.tags and not set(session_filter.tags) & set(metadata.tags):
        return False
    return True


def _sort_key(sort_by: str):
    if sort_by == "last_activity":
        return lambda record: record.metadata.last_activity
    return lambda record: getattr(record, sort_by)


def filter_sessions(records: list[SessionRecord], session_filter: Optional[SessionFilter]) -> list[SessionRecord]:
    session_filter = session_filter or SessionFilter()
    selected = [record for record in records if _matches(record, session_filter)]
    selected.sort(key=_sort_key(session_filter.sort_by), reverse=session_filter.sort_order == "desc")
    if session_filter.limit is not None:
        selected = selected[: session_filter.limit]
    return selected


def compute_stats(records: list[SessionRecord]) -> SessionStats:
    if not records:
        return SessionStats()
    created = [record.created_at for record in records]
    return SessionStats(
        total=len(records),
        active=sum(1 for record in records if record.metadata.active),
        oldest=min(created),
        newest=max(created),
    )


class BaseSessionStore(ABC):
    """
    Record semantics shared by every backend.

    Subclasses only implement raw persistence: ``_read``, ``_write``,
    ``_remove`` and ``_read_all``.
    """

    @abstractmethod
    async def _read(self, session_id: str) -> Optional[SessionRecord]:
        ...

    @abstractmethod
    async def _write(self, record: SessionRecord) -> None:
        ...

    @abstractmethod
    async def _remove(self, session_id: str) -> bool:
        ...

    @abstractmethod
    async def _read_all(self) -> list[SessionRecord]:
        ...

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        return await self._read(session_id)

    async def create(
        self,
        context: Optional[str] = None,
        metadata: MetadataInput = None,
        provider_data: Optional[dict[str, Any]] = None,
    ) -> SessionRecord:
        record = SessionRecord(
            id=str(uuid.uuid4()),
            context=context,
            provider_data=dict(provider_data or {}),
            metadata=SessionMetadata.model_validate(_metadata_dict(metadata)),
        )
        await self._write(record)
        session_operations_total.labels(operation="create", outcome="success").inc()
        logger.info(
            "Session created",
            session_id=record.id,
            provider=record.metadata.provider,
            store=type(self).__name__,
        )
        return record

    async def update(self, session_id: str, patch: dict[str, Any]) -> SessionRecord:
        """
        Update a session record.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        record = await self._read(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        updated = apply_patch(record, patch)
        await self._write(updated)
        logger.debug("Session updated", session_id=session_id, fields=sorted(patch))
        return updated

    async def delete(self, session_id: str) -> bool:
        deleted = await self._remove(session_id)
        if deleted:
            logger.info("Session deleted", session_id=session_id)
        return deleted

    async def list_sessions(self, session_filter: Optional[SessionFilter] = None) -> list[SessionRecord]:
        return filter_sessions(await self._read_all(), session_filter)

    async def cleanup(self, max_age_seconds: float) -> int:
        """Delete sessions idle for longer than ``max_age_seconds``; returns the count."""
        cutoff = utc_now() - timedelta(seconds=max_age_seconds)
        removed = 0
        for record in await self._read_all():
            if record.metadata.last_activity < cutoff and await self._remove(record.id):
                removed += 1
        session_operations_total.labels(operation="cleanup", outcome="success").inc()
        logger.info("Session cleanup completed", removed=removed, max_age_seconds=max_age_seconds)
        return removed

    async def get_stats(self) -> SessionStats:
        return compute_stats(await self._read_all())


class InMemorySessionStore(BaseSessionStore):
    """Process-local store; the default when no durable backend is configured."""

    def __init__(self):
        self._records: dict[str, SessionRecord] = {}

    async def _read(self, session_id: str) -> Optional[SessionRecord]:
        return self._records.get(session_id)

    async def _write(self, record: SessionRecord) -> None:
        self._records[record.id] = record

    async def _remove(self, session_id: str) -> bool:
        return self._records.pop(session_id, None) is not None

    async def _read_all(self) -> list[SessionRecord]:
        return list(self._records.values())


class FileSessionStore(BaseSessionStore):
    """
    One JSON file per session under ``storage_dir``.

    Filesystem calls run in worker threads so the event loop never blocks.
    Writes go to a temporary file first and are moved into place with
    ``os.replace``, so readers never see a partially written record.
    """

    def __init__(self, storage_dir: Union[str, Path]):
        self.storage_dir = Path(storage_dir).expanduser()
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        logger.info("File session store initialized", storage_dir=str(self.storage_dir))

    def _path(self, session_id: str) -> Optional[Path]:
        if not _SAFE_ID.match(session_id):
            return None
        return self.storage_dir / f"{session_id}.json"

    def _read_file(self, path: Path) -> Optional[SessionRecord]:
        try:
            payload = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise SessionStoreError(f"Failed to read session file {path.name}: {e}") from e
        try:
            return SessionRecord.from_json(payload)
        except ValueError as e:
            logger.warning("Skipping corrupt session file", path=str(path), error=str(e))
            return None

    def _write_file(self, record: SessionRecord) -> None:
        path = self._path(record.id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(record.to_json(), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise SessionStoreError(f"Failed to write session {record.id}: {e}") from e

    def _remove_file(self, path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False

    def _read_all_files(self) -> list[SessionRecord]:
        records = []
        for path in sorted(self.storage_dir.glob("*.json")):
            record = self._read_file(path)
            if record is not None:
                records.append(record)
        return records

    async def _read(self, session_id: str) -> Optional[SessionRecord]:
        path = self._path(session_id)
        if path is None:
            return None
        return await asyncio.to_thread(self._read_file, path)

    async def _write(self, record: SessionRecord) -> None:
        await asyncio.to_thread(self._write_file, record)

    async def _remove(self, session_id: str) -> bool:
        path = self._path(session_id)
        if path is None:
            return False
        return await asyncio.to_thread(self._remove_file, path)

    async def _read_all(self) -> list[SessionRecord]:
        return await asyncio.to_thread(self._read_all_files)
