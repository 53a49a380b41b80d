"""
Pipeline orchestrator: the public entry point of the extraction layer.

Pipeline:
    1. Configuration  - options -> RunConfiguration
    2. Pre-flight     - session request vs. provider capabilities
    3. Sessions       - resolve / create the session to run in
    4. Execution      - bounded retry loop
    5. Results        - public PipelineResult envelope

``run`` never raises: every failure, expected or not, comes back as an
``ok=False`` result with a populated error.
"""

import time
from typing import Optional

import structlog

from extraction_layer.config import Settings
from extraction_layer.config import settings as default_settings
from extraction_layer.llm.base_client import BaseProvider, ensure_provider_contract
from extraction_layer.llm.prompt_builder import PromptBuilder
from extraction_layer.logging_config import bind_run_context, clear_run_context
from extraction_layer.models.enums import ProviderErrorCode
from extraction_layer.models.errors import ProviderError
from extraction_layer.models.run_models import PipelineResult
from extraction_layer.monitoring.metrics import runs_total
from extraction_layer.pipeline.configuration import RunOptions, process_configuration
from extraction_layer.pipeline.result_processor import create_error_result, process_result
from extraction_layer.retry.engine import ExecutionEngine
from extraction_layer.sessions.coordinator import SessionCoordinator
from extraction_layer.sessions.factory import get_session_store
from extraction_layer.sessions.store import SessionStore

logger = structlog.get_logger(__name__)


class PipelineOrchestrator:
    """
    Composes configuration, session coordination, execution and result
    processing for one provider.

    Raises:
        TypeError: From the constructor, if the provider does not honour
            the provider contract
    """

    def __init__(
        self,
        provider: BaseProvider,
        session_store: Optional[SessionStore] = None,
        settings: Optional[Settings] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        ensure_provider_contract(provider)
        self.provider = provider
        self.session_store = session_store
        self.settings = settings or default_settings
        self.coordinator = SessionCoordinator(session_store)
        self.engine = ExecutionEngine(
            provider,
            prompt_builder=prompt_builder,
            session_store=session_store,
            settings=self.settings,
        )

    def _fail(
        self,
        code: ProviderErrorCode,
        message: str,
        started_at: float,
        model: Optional[str],
        session_id: Optional[str] = None,
    ) -> PipelineResult:
        error = ProviderError(code=code, message=message, provider=self.provider.name, retryable=False)
        return create_error_result(
            error,
            0,
            started_at,
            self.provider,
            model,
            session_id,
            threshold=self.settings.PERSISTENT_FAILURE_THRESHOLD,
        )

    async def run(self, options: RunOptions) -> PipelineResult:
        started_at = time.time()
        model: Optional[str] = options.model or self.settings.DEFAULT_MODEL
        bind_run_context(provider=self.provider.name)
        try:
            result = await self._run(options, started_at)
        except Exception as e:
            logger.error("Pipeline orchestration failed", error=str(e), error_type=type(e).__name__, exc_info=True)
            result = self._fail(
                ProviderErrorCode.ORCHESTRATION_FAILED,
                f"Pipeline orchestration failed: {str(e) or 'Unknown error'}",
                started_at,
                model,
                options.session_id,
            )
        finally:
            clear_run_context()

        runs_total.labels(outcome="success" if result.ok else "failure").inc()
        return result

    async def _run(self, options: RunOptions, started_at: float) -> PipelineResult:
        config = process_configuration(options, self.settings)

        valid, reason = self.coordinator.validate_session_state(config.session_id, self.provider)
        if not valid:
            logger.warning("Session pre-flight check failed", reason=reason)
            return self._fail(
                ProviderErrorCode.SESSION_COORDINATION_FAILED, reason, started_at, config.model, config.session_id
            )

        coordination = await self.coordinator.coordinate(config, self.provider)
        if not coordination.success:
            if coordination.error is not None:
                return create_error_result(
                    coordination.error,
                    0,
                    started_at,
                    self.provider,
                    config.model,
                    config.session_id,
                    threshold=self.settings.PERSISTENT_FAILURE_THRESHOLD,
                )
            return self._fail(
                ProviderErrorCode.SESSION_COORDINATION_FAILED,
                "Session coordination failed",
                started_at,
                config.model,
                config.session_id,
            )

        bind_run_context(session_id=coordination.session_id)
        logger.info(
            "Session coordination completed",
            has_session=bool(coordination.session_id),
            store_session_id=coordination.store_session_id,
            supports_session=self.provider.supports_session,
        )

        execution_result = await self.engine.execute(
            config,
            session_id=coordination.session_id,
            store_session_id=coordination.store_session_id,
        )
        return process_result(
            execution_result,
            coordination.store_session_id or coordination.session_id,
            started_at,
            self.provider,
            config.model,
            threshold=self.settings.PERSISTENT_FAILURE_THRESHOLD,
        )


async def run(
    options: RunOptions,
    provider: BaseProvider,
    session_store: Optional[SessionStore] = None,
    settings: Optional[Settings] = None,
) -> PipelineResult:
    """
    Run one extraction with the default composition.

    Falls back to the store named by ``SESSION_BACKEND`` when no store is
    given. A provider that fails the contract check yields an
    ``invalid_configuration`` result instead of raising.
    """
    settings = settings or default_settings
    try:
        ensure_provider_contract(provider)
    except TypeError as e:
        logger.error("Provider rejected", error=str(e))
        runs_total.labels(outcome="failure").inc()
        error = ProviderError(
            code=ProviderErrorCode.INVALID_CONFIGURATION,
            message=str(e),
            provider=str(getattr(provider, "name", None) or type(provider).__name__),
            retryable=False,
        )
        return create_error_result(error, 0, time.time(), provider, options.model, options.session_id)

    if session_store is None:
        session_store = get_session_store(settings)
    orchestrator = PipelineOrchestrator(provider, session_store=session_store, settings=settings)
    return await orchestrator.run(options)
