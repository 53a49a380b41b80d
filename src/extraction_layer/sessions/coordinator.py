"""
Session coordination: decide which session (if any) a run executes in.

Two identity spaces are in play. Callers may pass either a provider-native
session id or the id of a ``SessionRecord`` in the session store; a record
may link to a native id through ``provider_data["provider_session_id"]``.
Translation is forgiving: whenever the store cannot answer
(no store, lookup failure, unknown id, provider mismatch) the caller's id is
passed through unchanged.
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from extraction_layer.llm.base_client import SessionFactory, SessionValidator
from extraction_layer.llm.exceptions import LLMClientError
from extraction_layer.models.enums import ProviderErrorCode
from extraction_layer.models.errors import ProviderError
from extraction_layer.models.llm_models import SessionValidation
from extraction_layer.models.run_models import RunConfiguration
from extraction_layer.models.session_models import PROVIDER_SESSION_ID_KEY, SessionMetadata, SessionRecord
from extraction_layer.monitoring.metrics import session_operations_total
from extraction_layer.sessions.store import SessionStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SessionCoordination:
    """
    Outcome of session coordination.

    Attributes:
        success: False only when a required session could not be opened
        session_id: Id handed to ``provider.send_prompt`` (None = session-less)
        store_session_id: Store record to record turns against, if any
        error: Why coordination failed
    """

    success: bool
    session_id: Optional[str] = None
    store_session_id: Optional[str] = None
    error: Optional[ProviderError] = None


class SessionCoordinator:
    """
    Resolves the session for a run and manages store-backed sessions.

    Args:
        session_store: Store used for id translation and ``open_session``;
            without one every supplied id is treated as provider-native
    """

    def __init__(self, session_store: Optional[SessionStore] = None):
        self.session_store = session_store

    async def coordinate(self, config: RunConfiguration, provider: Any) -> SessionCoordination:
        if config.session_id:
            return await self.resolve(config.session_id, provider)

        if not provider.supports_session:
            logger.debug("Provider does not support sessions, running session-less", provider=provider.name)
            return SessionCoordination(success=True)

        return await self._create_provider_session(config, provider)

    async def resolve(self, session_id: str, provider: Any) -> SessionCoordination:
        """Translate a caller-supplied id into the id the provider should see."""
        if self.session_store is None:
            return SessionCoordination(success=True, session_id=session_id)

        try:
            record = await self.session_store.get(session_id)
        except Exception as e:
            logger.warning(
                "Session lookup failed, using id as provider session",
                session_id=session_id,
                error=str(e),
            )
            return SessionCoordination(success=True, session_id=session_id)

        if record is None:
            logger.debug("Session not in store, assuming provider-native id", session_id=session_id)
            return SessionCoordination(success=True, session_id=session_id)

        record_provider = record.metadata.provider
        if record_provider is not None and record_provider != provider.name:
            logger.warning(
                "Session belongs to a different provider, using original id",
                session_id=session_id,
                session_provider=record_provider,
                active_provider=provider.name,
            )
            return SessionCoordination(success=True, session_id=session_id)

        native_id = record.provider_data.get(PROVIDER_SESSION_ID_KEY)
        if native_id:
            logger.info("Translated store session to provider session", session_id=session_id, provider_session_id=native_id)
            return SessionCoordination(success=True, session_id=native_id, store_session_id=record.id)

        return SessionCoordination(success=True, session_id=session_id, store_session_id=record.id)

    async def _create_provider_session(self, config: RunConfiguration, provider: Any) -> SessionCoordination:
        if not isinstance(provider, SessionFactory):
            session_operations_total.labels(operation="provider_create", outcome="unsupported").inc()
            return SessionCoordination(
                success=False,
                error=ProviderError(
                    code=ProviderErrorCode.SESSION_NOT_SUPPORTED,
                    message=f"Provider {provider.name} supports sessions but cannot create them",
                    provider=provider.name,
                    retryable=False,
                ),
            )

        try:
            session_id = await provider.create_session(
                config.context, {"temperature": config.temperature, "model": config.model}
            )
        except Exception as e:
            session_operations_total.labels(operation="provider_create", outcome="error").inc()
            logger.error("Provider session creation failed", provider=provider.name, error=str(e), exc_info=True)
            return SessionCoordination(
                success=False,
                error=ProviderError(
                    code=ProviderErrorCode.SESSION_CREATION_FAILED,
                    message=f"Failed to create session: {e}",
                    provider=provider.name,
                    provider_code=e.provider_code.value if isinstance(e, LLMClientError) else None,
                    retryable=False,
                    details={"error_type": type(e).__name__},
                ),
            )

        session_operations_total.labels(operation="provider_create", outcome="success").inc()
        logger.info(
            "Session coordination completed",
            session_id=session_id,
            provider=provider.name,
            has_context=bool(config.context),
        )
        return SessionCoordination(success=True, session_id=session_id)

    @staticmethod
    def validate_session_state(session_id: Optional[str], provider: Any) -> tuple[bool, Optional[str]]:
        """
        Pre-flight check of the session request against provider capabilities.

        Returns:
            (valid, reason) - ``reason`` is None when valid
        """
        if session_id and not provider.supports_session:
            return False, f"Session ID provided but provider {provider.name} does not support sessions"
        if provider.supports_session and not session_id and not isinstance(provider, SessionFactory):
            return False, (
                f"Provider {provider.name} supports sessions but has no create_session method "
                "and no session ID provided"
            )
        return True, None

    async def open_session(
        self,
        context: Optional[str],
        provider: Any,
        model: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> SessionRecord:
        """
        Open a provider-native session and persist a store record linking to it.

        The returned record's id can be passed as ``session_id`` to later runs.

        Raises:
            ValueError: If no session store is configured
            TypeError: If the provider cannot create sessions
        """
        if self.session_store is None:
            raise ValueError("open_session requires a session store")
        if not provider.supports_session or not isinstance(provider, SessionFactory):
            raise TypeError(f"Provider {provider.name} cannot create sessions")

        options = {"model": model} if model else {}
        native_id = await provider.create_session(context, options)
        record = await self.session_store.create(
            context=context,
            metadata=SessionMetadata(provider=provider.name, model=model, tags=list(tags or [])),
            provider_data={PROVIDER_SESSION_ID_KEY: native_id},
        )
        logger.info(
            "Session opened",
            session_id=record.id,
            provider_session_id=native_id,
            provider=provider.name,
        )
        return record

    async def check_session(self, session_id: str, provider: Any) -> SessionValidation:
        """Ask the provider whether a native session is still usable."""
        if isinstance(provider, SessionValidator):
            return await provider.validate_session(session_id)
        if not provider.supports_session:
            return SessionValidation(
                valid=False, error=f"Provider {provider.name} does not support sessions"
            )
        return SessionValidation(valid=True)
