"""
Ollama provider adapter.

Communicates with the Ollama API using httpx AsyncClient. Supports:
- One-shot generation via POST /api/generate
- Simulated sessions via POST /api/chat (conversation history kept in memory)
- Structured output via JSON Schema (format parameter)
- Health checks via GET /api/tags
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import structlog

from extraction_layer.config import Settings
from extraction_layer.llm.base_client import BaseProvider
from extraction_layer.llm.exceptions import (
    LLMAuthenticationError,
    LLMConnectionError,
    LLMGenerationError,
    LLMModelNotAvailableError,
    LLMRateLimitError,
    LLMSessionError,
    LLMTimeoutError,
)
from extraction_layer.models.llm_models import ProviderResponse, SessionValidation, TokenUsage
from extraction_layer.monitoring.metrics import llm_latency_seconds, llm_tokens_total

logger = structlog.get_logger(__name__)


@dataclass
class SimulatedSession:
    """Conversation state for one simulated Ollama session."""

    id: str
    messages: list[dict[str, str]] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)


class OllamaProvider(BaseProvider):
    """
    Ollama adapter using httpx for async HTTP communication.

    Ollama has no server-side sessions, so sessions are simulated: each
    session id maps to a message history that is replayed through
    /api/chat on every prompt. Histories live in this process only.
    """

    name = "ollama"
    supports_session = True

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        timeout: int = 120,
        default_model: str = "qwen2.5:7b",
        connection_limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Ollama provider.

        Args:
            base_url: Ollama server URL
            timeout: Request timeout in seconds
            default_model: Model used when options carry none
            connection_limits: httpx connection pool limits
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.default_model = default_model
        self._connection_limits = connection_limits or httpx.Limits(
            max_keepalive_connections=5,
            max_connections=10,
            keepalive_expiry=30.0
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._sessions: dict[str, SimulatedSession] = {}

        logger.info("Ollama provider initialized", base_url=self.base_url, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "OllamaProvider":
        """Build a provider from ``OLLAMA_BASE_URL``, ``OLLAMA_TIMEOUT`` and ``DEFAULT_MODEL``."""
        return cls(
            base_url=settings.OLLAMA_BASE_URL,
            timeout=settings.OLLAMA_TIMEOUT,
            default_model=settings.DEFAULT_MODEL,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=self._connection_limits,
                transport=self._transport,
                follow_redirects=True
            )
        return self._client

    async def create_session(self, context: Optional[str], options: dict[str, Any]) -> str:
        """Open a simulated session seeded with ``context`` as the system message."""
        session_id = str(uuid.uuid4())
        session = SimulatedSession(id=session_id, options=dict(options or {}))
        if context:
            session.messages.append({"role": "system", "content": context})
        self._sessions[session_id] = session

        logger.info(
            "Ollama simulated session created",
            session_id=session_id,
            has_context=bool(context),
            total_sessions=len(self._sessions),
        )
        return session_id

    async def validate_session(self, session_id: str) -> SessionValidation:
        start = time.time()
        valid = session_id in self._sessions
        return SessionValidation(
            valid=valid,
            response_time_ms=int((time.time() - start) * 1000),
            error=None if valid else f"Unknown Ollama session: {session_id}",
        )

    async def send_success_feedback(self, session_id: str, message: str, metadata: dict[str, Any]) -> None:
        """
        Append an acknowledgement to the session history.

        Nothing is sent to the server; the message is replayed with the next prompt.

        Raises:
            LLMSessionError: Unknown session id
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise LLMSessionError(f"Unknown Ollama session: {session_id}", details={"session_id": session_id})
        session.messages.append({"role": "user", "content": message})
        logger.debug(
            "Success feedback recorded",
            session_id=session_id,
            attempt=metadata.get("attempt_number"),
        )

    def end_session(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def _build_payload(
        self, session: Optional[SimulatedSession], prompt: str, options: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        merged = {**(session.options if session else {}), **options}
        model = merged.get("model") or self.default_model
        generation_options: dict[str, Any] = {}
        if merged.get("temperature") is not None:
            generation_options["temperature"] = merged["temperature"]
        if merged.get("max_tokens") is not None:
            generation_options["num_predict"] = merged["max_tokens"]
        for key in ("top_p", "seed", "stop"):
            if merged.get(key) is not None:
                generation_options[key] = merged[key]

        payload: dict[str, Any] = {
            "model": model,
            "stream": False,
            "format": merged.get("format_schema") or "json",
            "options": generation_options,
        }
        if session is None:
            payload["prompt"] = prompt
            return "/api/generate", payload
        payload["messages"] = [*session.messages, {"role": "user", "content": prompt}]
        return "/api/chat", payload

    def _raise_for_status(self, response: httpx.Response, model: str) -> None:
        status = response.status_code
        if status < 400:
            return
        details = {"status": status, "error": response.text[:500], "model": model}
        if status == 404:
            raise LLMModelNotAvailableError(f"Model not found: {model}", details=details)
        if status in (401, 403):
            raise LLMAuthenticationError(f"Ollama rejected credentials: {status}", details=details)
        if status == 429:
            raise LLMRateLimitError("Ollama rate limit exceeded", details=details)
        if status >= 500:
            raise LLMGenerationError(f"Ollama server error: {status}", details=details, transient=True)
        raise LLMGenerationError(f"Ollama client error: {status}", details=details)

    async def send_prompt(
        self,
        session_id: Optional[str],
        prompt: str,
        options: dict[str, Any],
    ) -> ProviderResponse:
        """
        Send a prompt, replaying the session history when a session id is given.

        Raises:
            LLMSessionError: Unknown session id
            LLMTimeoutError / LLMConnectionError: Network failures
            LLMGenerationError and subclasses: Error responses
        """
        session = None
        if session_id is not None:
            session = self._sessions.get(session_id)
            if session is None:
                raise LLMSessionError(
                    f"Unknown Ollama session: {session_id}", details={"session_id": session_id}
                )

        endpoint, payload = self._build_payload(session, prompt, options)
        model = payload["model"]
        start_time = time.time()

        logger.info(
            "Sending prompt to Ollama",
            endpoint=endpoint,
            model=model,
            prompt_length=len(prompt),
            session_id=session_id,
        )

        try:
            client = await self._get_client()
            response = await client.post(endpoint, json=payload)
        except httpx.TimeoutException as e:
            llm_latency_seconds.labels(provider=self.name, success="false").observe(time.time() - start_time)
            raise LLMTimeoutError(
                f"Request timeout after {self.timeout}s", details={"timeout": self.timeout}
            ) from e
        except httpx.HTTPError as e:
            llm_latency_seconds.labels(provider=self.name, success="false").observe(time.time() - start_time)
            raise LLMConnectionError(
                f"Network error: {e}", details={"error_type": type(e).__name__}
            ) from e

        latency = time.time() - start_time
        self._raise_for_status(response, model)

        try:
            data = response.json()
        except ValueError as e:
            raise LLMGenerationError("Invalid JSON response from Ollama", details={"parse_error": str(e)}) from e

        if session is None:
            content = data.get("response", "")
        else:
            content = (data.get("message") or {}).get("content", "")
            session.messages.append({"role": "user", "content": prompt})
            session.messages.append({"role": "assistant", "content": content})

        input_tokens = data.get("prompt_eval_count") or 0
        output_tokens = data.get("eval_count") or 0
        usage = TokenUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )

        llm_latency_seconds.labels(provider=self.name, success="true").observe(latency)
        if input_tokens:
            llm_tokens_total.labels(provider=self.name, token_type="input").inc(input_tokens)
        if output_tokens:
            llm_tokens_total.labels(provider=self.name, token_type="output").inc(output_tokens)

        logger.info(
            "Ollama generation successful",
            model=data.get("model", model),
            latency_ms=int(latency * 1000),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

        return ProviderResponse(
            content=content,
            token_usage=usage,
            metadata={
                "model": data.get("model", model),
                "done": data.get("done"),
                "total_duration": data.get("total_duration"),
                "latency_ms": int(latency * 1000),
            },
        )

    async def health_check(self) -> bool:
        """Check Ollama server health via GET /api/tags; never raises."""
        try:
            client = await self._get_client()
            response = await client.get("/api/tags", timeout=5.0)
            response.raise_for_status()
            return True
        except Exception as e:
            logger.warning("Ollama health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the HTTP client connection."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed Ollama client connection")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
