"""
Provider capability contract.

Defines the interface every provider adapter must satisfy, plus the two
optional capabilities (session creation, session validation and success
feedback) as runtime-checkable protocols. The retry engine only ever talks to a
provider through these types.
"""

import inspect
from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol, runtime_checkable

import structlog

from extraction_layer.models.llm_models import ProviderResponse, SessionValidation

logger = structlog.get_logger(__name__)


class BaseProvider(ABC):
    """
    Abstract base class for provider adapters.

    Responsibilities:
    - Send a prompt, optionally inside a provider-native session
    - Report token usage when the backend exposes it
    - Fail by raising (preferably an ``LLMClientError`` subclass)

    Does NOT handle:
    - Prompt construction (that's PromptBuilder's job)
    - Response validation (that's ValidationPipeline's job)
    - Retry logic for validation failures (that's ExecutionEngine's job)
    """

    name: str = "provider"
    supports_session: bool = False

    @abstractmethod
    async def send_prompt(
        self,
        session_id: Optional[str],
        prompt: str,
        options: dict[str, Any],
    ) -> ProviderResponse:
        """
        Send one prompt and return the raw model output.

        Args:
            session_id: Provider-native session id, or None for a one-shot call
            prompt: Complete prompt text
            options: Generation options (model, temperature, max_tokens,
                format_schema and adapter-specific extras)

        Returns:
            ProviderResponse with the generated text and token usage

        Raises:
            LLMClientError: On any provider-side failure
        """

    async def health_check(self) -> bool:
        """Lightweight reachability check; must not raise."""
        return True

    async def close(self) -> None:
        logger.debug("Closing provider", provider=self.name)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, supports_session={self.supports_session})"


@runtime_checkable
class SessionFactory(Protocol):
    """Provider capability: open a provider-native session."""

    async def create_session(self, context: Optional[str], options: dict[str, Any]) -> str:
        ...


@runtime_checkable
class SessionValidator(Protocol):
    """Provider capability: check whether a provider-native session is still usable."""

    async def validate_session(self, session_id: str) -> SessionValidation:
        ...


@runtime_checkable
class SuccessFeedbackSink(Protocol):
    """Provider capability: tell a session that its last answer was accepted."""

    async def send_success_feedback(self, session_id: str, message: str, metadata: dict[str, Any]) -> None:
        ...


def ensure_provider_contract(provider: Any) -> None:
    """
    Verify that an externally supplied adapter honours the provider contract.

    Called once where an adapter is registered, so later code can rely on
    the contract without probing.

    Raises:
        TypeError: If a required attribute is missing or has the wrong type
    """
    problems = []
    name = getattr(provider, "name", None)
    if not isinstance(name, str) or not name:
        problems.append("'name' must be a non-empty string")
    if not isinstance(getattr(provider, "supports_session", None), bool):
        problems.append("'supports_session' must be a bool")
    send_prompt = getattr(provider, "send_prompt", None)
    if send_prompt is None or not inspect.iscoroutinefunction(send_prompt):
        problems.append("'send_prompt' must be an async method")
    if isinstance(provider, SessionFactory) and not inspect.iscoroutinefunction(provider.create_session):
        problems.append("'create_session' must be an async method")

    if problems:
        raise TypeError(
            f"{type(provider).__name__} does not satisfy the provider contract: " + "; ".join(problems)
        )
    logger.debug(
        "Provider contract verified",
        provider=name,
        supports_session=provider.supports_session,
        can_create_sessions=isinstance(provider, SessionFactory),
    )
