"""Unit tests for the Ollama provider, served by an httpx mock transport."""

import json

import httpx
import pytest

from extraction_layer.llm.base_client import (
    SessionFactory,
    SessionValidator,
    SuccessFeedbackSink,
    ensure_provider_contract,
)
from extraction_layer.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMGenerationError,
    LLMModelNotAvailableError,
    LLMRateLimitError,
    LLMSessionError,
    LLMTimeoutError,
)
from extraction_layer.llm.ollama_client import OllamaProvider
from extraction_layer.models.enums import ProviderErrorCode


class Recorder:
    """Mock transport handler that records requests and replays one response."""

    def __init__(self, status: int = 200, body: dict | None = None, exc: Exception | None = None):
        self.status = status
        self.body = body if body is not None else {}
        self.exc = exc
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return httpx.Response(self.status, json=self.body)

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


def make_provider(handler: Recorder) -> OllamaProvider:
    return OllamaProvider(base_url="http://ollama.test", transport=httpx.MockTransport(handler))


GENERATE_BODY = {
    "model": "qwen2.5:7b",
    "response": '{"name": "Ada", "age": 36}',
    "done": True,
    "prompt_eval_count": 12,
    "eval_count": 8,
}
CHAT_BODY = {
    "model": "qwen2.5:7b",
    "message": {"role": "assistant", "content": '{"name": "Ada"}'},
    "done": True,
    "prompt_eval_count": 5,
    "eval_count": 3,
}


class TestContract:

    def test_provider_satisfies_contract(self):
        provider = OllamaProvider()

        ensure_provider_contract(provider)
        assert isinstance(provider, SessionFactory)
        assert isinstance(provider, SessionValidator)
        assert isinstance(provider, SuccessFeedbackSink)

    def test_contract_rejects_sync_send_prompt(self):
        class SyncProvider:
            name = "sync"
            supports_session = False

            def send_prompt(self, session_id, prompt, options):
                return None

        with pytest.raises(TypeError, match="'send_prompt' must be an async method"):
            ensure_provider_contract(SyncProvider())

    def test_contract_reports_every_problem(self):
        class Broken:
            name = ""
            supports_session = "yes"

        with pytest.raises(TypeError) as exc_info:
            ensure_provider_contract(Broken())

        message = str(exc_info.value)
        assert "'name' must be a non-empty string" in message
        assert "'supports_session' must be a bool" in message
        assert "'send_prompt' must be an async method" in message


class TestSendPrompt:

    @pytest.mark.asyncio
    async def test_one_shot_uses_generate(self):
        handler = Recorder(body=GENERATE_BODY)
        provider = make_provider(handler)

        response = await provider.send_prompt(
            None,
            "extract",
            {"model": "llama3", "temperature": 0.2, "max_tokens": 100, "format_schema": {"type": "object"}},
        )

        assert handler.requests[0].url.path == "/api/generate"
        payload = handler.payloads[0]
        assert payload["model"] == "llama3"
        assert payload["prompt"] == "extract"
        assert payload["stream"] is False
        assert payload["format"] == {"type": "object"}
        assert payload["options"] == {"temperature": 0.2, "num_predict": 100}
        assert response.content == '{"name": "Ada", "age": 36}'
        assert response.token_usage.input_tokens == 12
        assert response.token_usage.output_tokens == 8
        assert response.token_usage.total_tokens == 20
        await provider.close()

    @pytest.mark.asyncio
    async def test_default_model_and_json_format(self):
        handler = Recorder(body=GENERATE_BODY)
        provider = make_provider(handler)

        await provider.send_prompt(None, "extract", {})

        payload = handler.payloads[0]
        assert payload["model"] == "qwen2.5:7b"
        assert payload["format"] == "json"
        assert payload["options"] == {}

    @pytest.mark.asyncio
    async def test_missing_token_counts_are_zero(self):
        provider = make_provider(Recorder(body={"response": "{}"}))

        response = await provider.send_prompt(None, "p", {})

        assert response.token_usage.total_tokens == 0

    @pytest.mark.asyncio
    async def test_session_uses_chat_and_keeps_history(self):
        handler = Recorder(body=CHAT_BODY)
        provider = make_provider(handler)
        session_id = await provider.create_session("You extract people.", {"temperature": 0.1})

        await provider.send_prompt(session_id, "first", {})
        await provider.send_prompt(session_id, "second", {})

        assert handler.requests[0].url.path == "/api/chat"
        first, second = handler.payloads
        assert first["messages"] == [
            {"role": "system", "content": "You extract people."},
            {"role": "user", "content": "first"},
        ]
        assert first["options"] == {"temperature": 0.1}
        assert second["messages"] == [
            {"role": "system", "content": "You extract people."},
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": '{"name": "Ada"}'},
            {"role": "user", "content": "second"},
        ]

    @pytest.mark.asyncio
    async def test_unknown_session(self):
        provider = make_provider(Recorder(body=CHAT_BODY))

        with pytest.raises(LLMSessionError) as exc_info:
            await provider.send_prompt("missing", "p", {})

        assert exc_info.value.provider_code == ProviderErrorCode.SESSION_CREATION_FAILED


class TestErrorMapping:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,exc_type,code",
        [
            (404, LLMModelNotAvailableError, ProviderErrorCode.INVALID_CONFIGURATION),
            (401, LLMAuthenticationError, ProviderErrorCode.AUTHENTICATION_FAILED),
            (403, LLMAuthenticationError, ProviderErrorCode.AUTHENTICATION_FAILED),
            (429, LLMRateLimitError, ProviderErrorCode.RATE_LIMITED),
            (503, LLMGenerationError, ProviderErrorCode.PROVIDER_UNAVAILABLE),
            (400, LLMGenerationError, ProviderErrorCode.PROVIDER_CALL_FAILED),
        ],
    )
    async def test_status_codes(self, status, exc_type, code):
        provider = make_provider(Recorder(status=status, body={"error": "nope"}))

        with pytest.raises(exc_type) as exc_info:
            await provider.send_prompt(None, "p", {"model": "m"})

        assert exc_info.value.provider_code == code
        assert exc_info.value.details["status"] == status

    @pytest.mark.asyncio
    async def test_timeout(self):
        provider = make_provider(Recorder(exc=httpx.ReadTimeout("slow")))

        with pytest.raises(LLMTimeoutError) as exc_info:
            await provider.send_prompt(None, "p", {})

        assert exc_info.value.provider_code == ProviderErrorCode.PROVIDER_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_connection_error(self):
        provider = make_provider(Recorder(exc=httpx.ConnectError("refused")))

        with pytest.raises(LLMConnectionError, match="Network error"):
            await provider.send_prompt(None, "p", {})


class TestSessions:

    @pytest.mark.asyncio
    async def test_validate_and_end_session(self):
        provider = OllamaProvider()
        session_id = await provider.create_session(None, {})

        assert (await provider.validate_session(session_id)).valid is True
        assert provider.end_session(session_id) is True
        validation = await provider.validate_session(session_id)
        assert validation.valid is False
        assert "Unknown Ollama session" in validation.error

    @pytest.mark.asyncio
    async def test_success_feedback_replayed_with_next_prompt(self):
        handler = Recorder(body=CHAT_BODY)
        provider = make_provider(handler)
        session_id = await provider.create_session(None, {})

        await provider.send_prompt(session_id, "first", {})
        await provider.send_success_feedback(session_id, "Correct, keep this format.", {"attempt_number": 1})
        await provider.send_prompt(session_id, "second", {})

        assert len(handler.requests) == 2
        assert handler.payloads[1]["messages"] == [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": '{"name": "Ada"}'},
            {"role": "user", "content": "Correct, keep this format."},
            {"role": "user", "content": "second"},
        ]

    @pytest.mark.asyncio
    async def test_success_feedback_unknown_session(self):
        provider = OllamaProvider()

        with pytest.raises(LLMSessionError):
            await provider.send_success_feedback("missing", "thanks", {})

    @pytest.mark.asyncio
    async def test_health_check(self):
        provider = make_provider(Recorder(body={"models": []}))

        assert await provider.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_failure_does_not_raise(self):
        provider = make_provider(Recorder(status=500))

        assert await provider.health_check() is False


def test_from_settings(test_settings):
    settings = test_settings.model_copy(update={"OLLAMA_BASE_URL": "http://gpu-box:11434/", "OLLAMA_TIMEOUT": 30})

    provider = OllamaProvider.from_settings(settings)

    assert provider.base_url == "http://gpu-box:11434"
    assert provider.timeout == 30
    assert provider.default_model == "test-model"
