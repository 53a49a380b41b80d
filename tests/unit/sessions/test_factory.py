"""
Unit tests for session store selection.
"""

from unittest.mock import MagicMock, patch

import pytest

from extraction_layer.sessions.factory import get_session_store
from extraction_layer.sessions.redis_store import RedisSessionStore
from extraction_layer.sessions.store import FileSessionStore, InMemorySessionStore


def test_memory_backend(test_settings):
    assert isinstance(get_session_store(test_settings), InMemorySessionStore)


def test_file_backend(test_settings, tmp_path):
    settings = test_settings.model_copy(
        update={"SESSION_BACKEND": "FILE", "SESSION_STORAGE_DIR": str(tmp_path / "s")}
    )

    store = get_session_store(settings)

    assert isinstance(store, FileSessionStore)
    assert store.storage_dir == tmp_path / "s"


def test_redis_backend(test_settings):
    settings = test_settings.model_copy(update={"SESSION_BACKEND": "redis", "SESSION_TTL_SECONDS": 60})

    with patch("extraction_layer.sessions.factory.get_async_redis_client") as mock_client:
        mock_client.return_value = MagicMock()
        store = get_session_store(settings)

    assert isinstance(store, RedisSessionStore)
    assert store.ttl_seconds == 60
    mock_client.assert_called_once_with(settings)


def test_unknown_backend(test_settings):
    settings = test_settings.model_copy(update={"SESSION_BACKEND": "postgres"})

    with pytest.raises(ValueError, match="Unknown SESSION_BACKEND 'postgres'"):
        get_session_store(settings)
