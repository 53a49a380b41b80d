"""
Session preloading: put material into a session before extracting from it.

``preload`` sends one prompt into an existing session and returns the raw
reply. There is no retry loop and no output validation; the input itself
can optionally be checked against a schema first. ``init_session`` opens
(or reuses) a session and optionally sends a first prompt.

Like ``run``, ``preload`` never raises. ``init_session`` raises, because
callers need a usable session id or nothing.
"""

import json
import time
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from extraction_layer.config import Settings
from extraction_layer.config import settings as default_settings
from extraction_layer.llm.base_client import BaseProvider, SessionFactory, ensure_provider_contract
from extraction_layer.llm.exceptions import LLMClientError
from extraction_layer.llm.prompt_builder import PromptBuilder
from extraction_layer.logging_config import bind_run_context, clear_run_context
from extraction_layer.models.enums import ProviderErrorCode
from extraction_layer.models.errors import ExtractionError, ProviderError
from extraction_layer.models.run_models import ExecutionMetadata
from extraction_layer.monitoring.metrics import session_operations_total
from extraction_layer.pipeline.configuration import ConfigurationError
from extraction_layer.pipeline.result_processor import build_execution_metadata
from extraction_layer.sessions.coordinator import SessionCoordinator
from extraction_layer.sessions.store import SessionStore
from extraction_layer.validation.pipeline import validate_response
from extraction_layer.validation.stage2_schema import as_schema

logger = structlog.get_logger(__name__)


class PreloadOptions(BaseModel):
    """Options accepted by ``preload``. ``session_id`` may be a store id or a native id."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    input: Any = Field(..., description="Material to load into the session")
    session_id: str = Field(..., description="Session that receives the material")
    context: Optional[str] = None
    lens: Optional[str] = None
    model: Optional[str] = None
    provider_options: dict[str, Any] = Field(default_factory=dict)
    validate_input: Any = Field(
        default=None, description="Schema the input must satisfy before it is sent"
    )


class PreloadResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool
    session_id: Optional[str] = None
    raw_response: Optional[str] = None
    error: Optional[ExtractionError] = None
    metadata: ExecutionMetadata


class InitSessionOptions(BaseModel):
    """
    Options accepted by ``init_session``.

    ``context`` seeds a newly created session; it is not re-sent when
    ``session_id`` names an existing one.
    """
    model_config = ConfigDict(frozen=True)

    context: str
    initial_prompt: Optional[str] = None
    session_id: Optional[str] = None
    model: Optional[str] = None
    provider_options: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)


class InitSessionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    provider_session_id: str
    response: Optional[str] = None
    metadata: ExecutionMetadata


def _check_preload_options(options: PreloadOptions) -> list[str]:
    errors = []
    if options.input is None or options.input == "":
        errors.append("Preload configuration error: input is required")
    if not options.session_id.strip():
        errors.append("Preload configuration error: session_id is required and must be a non-empty string")
    return errors


def _error_result(
    error: ExtractionError, started_at: float, provider: Any, model: Optional[str], session_id: Optional[str]
) -> PreloadResult:
    session_operations_total.labels(operation="preload", outcome="error").inc()
    return PreloadResult(
        ok=False,
        session_id=session_id,
        error=error,
        metadata=build_execution_metadata(started_at, provider, model),
    )


def _provider_failure(code: ProviderErrorCode, message: str, provider: Any, exc: Optional[Exception] = None):
    details = {"error_type": type(exc).__name__} if exc is not None else {}
    return ProviderError(
        code=code,
        message=message,
        provider=str(getattr(provider, "name", None) or type(provider).__name__),
        provider_code=exc.provider_code.value if isinstance(exc, LLMClientError) else None,
        retryable=False,
        details=details,
    )


async def preload(
    options: PreloadOptions,
    provider: BaseProvider,
    session_store: Optional[SessionStore] = None,
    settings: Optional[Settings] = None,
    prompt_builder: Optional[PromptBuilder] = None,
) -> PreloadResult:
    """
    Load material into a session with a single provider call.

    Returns:
        PreloadResult carrying the raw reply, or the error that stopped it:
        the input's ``ValidationError``, ``session_not_supported``,
        ``preload_execution_failed`` (the provider call raised) or
        ``preload_orchestration_failed`` (anything else)
    """
    settings = settings or default_settings
    started_at = time.time()
    model = options.model or settings.DEFAULT_MODEL
    bind_run_context(provider=getattr(provider, "name", None), operation="preload")
    try:
        ensure_provider_contract(provider)
        errors = _check_preload_options(options)
        if errors:
            raise ConfigurationError(errors)

        if not provider.supports_session:
            logger.warning("Preload requires a session-capable provider", provider=provider.name)
            return _error_result(
                _provider_failure(
                    ProviderErrorCode.SESSION_NOT_SUPPORTED,
                    f"Provider {provider.name} does not support sessions; preload needs one",
                    provider,
                ),
                started_at,
                provider,
                model,
                options.session_id,
            )

        if options.validate_input is not None:
            raw = options.input if isinstance(options.input, str) else json.dumps(options.input, default=str)
            outcome = validate_response(raw, as_schema(options.validate_input))
            if not outcome.success:
                logger.warning("Preload input failed validation", code=outcome.error.code.value)
                return _error_result(outcome.error, started_at, provider, model, options.session_id)

        coordination = await SessionCoordinator(session_store).resolve(options.session_id, provider)
        prompt = (prompt_builder or PromptBuilder()).build_preload_prompt(options.input, options.context, options.lens)
        send_options = {**options.provider_options, "model": model}

        logger.info("Sending preload", session_id=coordination.session_id, prompt_length=len(prompt))
        try:
            response = await provider.send_prompt(coordination.session_id, prompt, send_options)
        except Exception as e:
            logger.error("Preload execution failed", error=str(e), error_type=type(e).__name__)
            return _error_result(
                _provider_failure(
                    ProviderErrorCode.PRELOAD_EXECUTION_FAILED,
                    f"Preload execution failed: {str(e) or type(e).__name__}",
                    provider,
                    e,
                ),
                started_at,
                provider,
                model,
                options.session_id,
            )
    except Exception as e:
        logger.error("Preload orchestration failed", error=str(e), error_type=type(e).__name__, exc_info=True)
        return _error_result(
            _provider_failure(
                ProviderErrorCode.PRELOAD_ORCHESTRATION_FAILED,
                f"Preload orchestration failed: {str(e) or 'Unknown error'}",
                provider,
                e,
            ),
            started_at,
            provider,
            model,
            options.session_id,
        )
    finally:
        clear_run_context()

    session_operations_total.labels(operation="preload", outcome="success").inc()
    logger.info("Preload completed", session_id=options.session_id, response_length=len(response.content or ""))
    return PreloadResult(
        ok=True,
        session_id=options.session_id,
        raw_response=response.content,
        metadata=build_execution_metadata(started_at, provider, model, response.token_usage),
    )


async def init_session(
    options: InitSessionOptions,
    provider: BaseProvider,
    session_store: Optional[SessionStore] = None,
    settings: Optional[Settings] = None,
) -> InitSessionResult:
    """
    Open a session (or reuse ``options.session_id``) and optionally prime it.

    With a session store a new session is persisted and the store id is
    returned; without one the provider-native id is returned.

    Raises:
        TypeError: If the provider cannot provide sessions
        LLMClientError: If the provider fails to create the session or
            answer the initial prompt
    """
    settings = settings or default_settings
    started_at = time.time()
    model = options.model or settings.DEFAULT_MODEL
    ensure_provider_contract(provider)
    coordinator = SessionCoordinator(session_store)

    if options.session_id:
        if not provider.supports_session:
            raise TypeError(f"Provider {provider.name} does not support sessions")
        coordination = await coordinator.resolve(options.session_id, provider)
        session_id, native_id = options.session_id, coordination.session_id
    elif not provider.supports_session or not isinstance(provider, SessionFactory):
        raise TypeError(f"Provider {provider.name} cannot create sessions")
    elif session_store is not None:
        record = await coordinator.open_session(options.context, provider, model=model, tags=options.tags)
        session_id, native_id = record.id, record.provider_session_id
    else:
        native_id = await provider.create_session(options.context, {"model": model})
        session_id = native_id
    session_operations_total.labels(operation="init", outcome="success").inc()

    response = None
    token_usage = None
    if options.initial_prompt:
        reply = await provider.send_prompt(
            native_id, options.initial_prompt, {**options.provider_options, "model": model}
        )
        response = reply.content
        token_usage = reply.token_usage

    logger.info(
        "Session initialized",
        session_id=session_id,
        provider_session_id=native_id,
        reused=bool(options.session_id),
        primed=response is not None,
    )
    return InitSessionResult(
        session_id=session_id,
        provider_session_id=native_id,
        response=response,
        metadata=build_execution_metadata(started_at, provider, model, token_usage),
    )
