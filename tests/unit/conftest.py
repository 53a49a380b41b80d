"""Unit test fixtures (fake providers and mocks).

Provides provider adapters and Redis mocks for testing without external
services. Fake providers are real ``BaseProvider`` subclasses so the
provider contract check accepts them.
"""

from typing import Any, Optional, Union
from unittest.mock import AsyncMock

import pytest

from extraction_layer.llm.base_client import BaseProvider
from extraction_layer.models.llm_models import ProviderResponse, SessionValidation, TokenUsage
from extraction_layer.models.run_models import RunConfiguration
from extraction_layer.validation.stage2_schema import PydanticSchema

Scripted = Union[str, Exception]


class ScriptedProvider(BaseProvider):
    """Session-less provider replaying a fixed script of responses.

    Each ``send_prompt`` call consumes the next entry; the last entry is
    repeated once the script runs out. Exceptions in the script are raised.
    """

    name = "scripted"
    supports_session = False

    def __init__(self, script: list[Scripted], tokens_per_call: int = 10):
        self.script = list(script)
        self.tokens_per_call = tokens_per_call
        self.calls: list[tuple[Optional[str], str, dict[str, Any]]] = []

    async def send_prompt(self, session_id: Optional[str], prompt: str, options: dict[str, Any]) -> ProviderResponse:
        self.calls.append((session_id, prompt, options))
        index = min(len(self.calls) - 1, len(self.script) - 1)
        entry = self.script[index]
        if isinstance(entry, Exception):
            raise entry
        return ProviderResponse(
            content=entry,
            token_usage=TokenUsage(
                input_tokens=self.tokens_per_call,
                output_tokens=self.tokens_per_call,
                total_tokens=self.tokens_per_call * 2,
            ),
        )


class SessionProvider(ScriptedProvider):
    """Scripted provider that can create and validate native sessions."""

    name = "session-provider"
    supports_session = True

    def __init__(self, script: list[Scripted], create_error: Optional[Exception] = None):
        super().__init__(script)
        self.create_error = create_error
        self.created: list[tuple[Optional[str], dict[str, Any]]] = []

    async def create_session(self, context: Optional[str], options: dict[str, Any]) -> str:
        if self.create_error is not None:
            raise self.create_error
        self.created.append((context, options))
        return f"native-{len(self.created)}"

    async def validate_session(self, session_id: str) -> SessionValidation:
        return SessionValidation(valid=session_id.startswith("native-"), response_time_ms=0)


class FeedbackSessionProvider(SessionProvider):
    """Session provider that also accepts success feedback."""

    name = "feedback-provider"

    def __init__(self, script: list[Scripted], feedback_error: Optional[Exception] = None):
        super().__init__(script)
        self.feedback_error = feedback_error
        self.feedback: list[tuple[str, str, dict[str, Any]]] = []

    async def send_success_feedback(self, session_id: str, message: str, metadata: dict[str, Any]) -> None:
        if self.feedback_error is not None:
            raise self.feedback_error
        self.feedback.append((session_id, message, metadata))


class SessionNoFactoryProvider(ScriptedProvider):
    """Claims session support but cannot create sessions."""

    name = "no-factory"
    supports_session = True


@pytest.fixture
def scripted_provider():
    """Factory fixture: ``scripted_provider(['{"a": 1}'])``."""
    return ScriptedProvider


@pytest.fixture
def session_provider():
    """Factory fixture: ``session_provider(script, create_error=None)``."""
    return SessionProvider


@pytest.fixture
def feedback_provider():
    """Factory fixture: ``feedback_provider(script, feedback_error=None)``."""
    return FeedbackSessionProvider


@pytest.fixture
def no_factory_provider():
    return SessionNoFactoryProvider


@pytest.fixture
def mock_async_redis():
    """Mock AsyncRedis client for unit tests (async)."""
    mock = AsyncMock()
    mock.get = AsyncMock(return_value=None)
    mock.mget = AsyncMock(return_value=[])
    mock.setex = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=1)
    mock.zadd = AsyncMock(return_value=1)
    mock.zrem = AsyncMock(return_value=1)
    mock.zrange = AsyncMock(return_value=[])
    mock.zrangebyscore = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def make_config(person_model):
    """Factory fixture building a RunConfiguration over the Person schema."""

    def _make(**overrides) -> RunConfiguration:
        values: dict[str, Any] = {
            "output_schema": PydanticSchema(person_model),
            "input": "Ada Lovelace, 36, admin",
            "retries": 2,
            "model": "test-model",
            "temperature": 0.4,
            "max_tokens": 512,
        }
        values.update(overrides)
        return RunConfiguration(**values)

    return _make
