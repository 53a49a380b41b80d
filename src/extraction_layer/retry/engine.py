"""
Execution engine: the bounded prompt / validate / feedback loop.

Each attempt builds a prompt, sends it to the provider and validates the
response. Failed attempts feed escalating feedback into the next prompt.
Once a value validates, optional enhancement rounds ask the model to
improve it; a round that fails never costs the run its value.

Retry Policy:
    - ``retries + 1`` attempts at most, numbered from 1
    - One shared budget for provider failures and validation failures
    - The loop stops early only when the last error is not retryable
    - No delay between attempts

Usage:
    engine = ExecutionEngine(provider, session_store=store)
    result = await engine.execute(config, session_id=coordination.session_id)
"""

import time
from typing import Any, Optional

import structlog

from extraction_layer.config import Settings
from extraction_layer.config import settings as default_settings
from extraction_layer.llm.base_client import BaseProvider, SuccessFeedbackSink
from extraction_layer.llm.exceptions import LLMClientError
from extraction_layer.llm.prompt_builder import (
    PromptBuilder,
    augment_prompt_with_errors,
    combine_prompt_parts,
)
from extraction_layer.models.enums import ProviderErrorCode
from extraction_layer.models.errors import ExtractionError, ProviderError
from extraction_layer.models.llm_models import TokenUsage
from extraction_layer.models.run_models import ExecutionResult, RunConfiguration
from extraction_layer.models.timestamps import to_iso, utc_now
from extraction_layer.monitoring.metrics import (
    attempts_total,
    enhancement_rounds_total,
    provider_errors_total,
    retries_total,
    session_operations_total,
)
from extraction_layer.retry.enhancement import (
    build_enhancement_prompt,
    combine_enhancement_prompt,
    evaluate_improvement,
)
from extraction_layer.retry.recovery import analyze_error
from extraction_layer.sessions.store import SessionStore
from extraction_layer.validation.feedback import format_validation_feedback
from extraction_layer.validation.pipeline import ValidationPipeline

logger = structlog.get_logger(__name__)


class ExecutionEngine:
    """
    Runs one extraction to completion within its attempt budget.

    Attributes:
        provider: Provider adapter used for every attempt
        prompt_builder: Builds the per-attempt prompt
        session_store: Optional store that receives per-turn usage
        validation_pipeline: Validates raw provider output
    """

    def __init__(
        self,
        provider: BaseProvider,
        prompt_builder: Optional[PromptBuilder] = None,
        session_store: Optional[SessionStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.provider = provider
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.session_store = session_store
        self.settings = settings or default_settings
        self.validation_pipeline = ValidationPipeline(self.settings.PERSISTENT_FAILURE_THRESHOLD)

    def _build_options(self, config: RunConfiguration) -> dict[str, Any]:
        return {
            **config.provider_options,
            "model": config.model,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "format_schema": config.output_schema.json_schema(),
        }

    def _provider_error(self, exc: Exception) -> ProviderError:
        if isinstance(exc, LLMClientError):
            provider_code = exc.provider_code.value
            details = dict(exc.details)
        else:
            provider_code = None
            details = {}
        details.setdefault("error_type", type(exc).__name__)
        provider_errors_total.labels(provider=self.provider.name, code=provider_code or "unknown").inc()
        return ProviderError(
            code=ProviderErrorCode.PROVIDER_CALL_FAILED,
            message=str(exc) or type(exc).__name__,
            provider=self.provider.name,
            provider_code=provider_code,
            retryable=True,
            details=details,
        )

    async def _record_turn(self, store_session_id: str, tokens: Optional[TokenUsage]) -> None:
        try:
            record = await self.session_store.get(store_session_id)
            if record is None:
                logger.warning("Session record vanished, turn not recorded", session_id=store_session_id)
                return
            await self.session_store.update(
                store_session_id,
                {
                    "metadata": {
                        "prompt_count": record.metadata.prompt_count + 1,
                        "total_tokens": record.metadata.total_tokens + (tokens.total_tokens if tokens else 0),
                    }
                },
            )
        except Exception as e:
            logger.warning("Failed to record session turn", session_id=store_session_id, error=str(e))

    async def _send_success_feedback(
        self,
        config: RunConfiguration,
        session_id: str,
        store_session_id: Optional[str],
        value: Any,
        attempt: int,
    ) -> None:
        """Store and forward the run's success message. Failures are logged only."""
        if self.session_store is not None and store_session_id:
            try:
                record = await self.session_store.get(store_session_id)
                if record is not None:
                    await self.session_store.update(
                        store_session_id,
                        {"metadata": {"success_feedback_count": record.metadata.success_feedback_count + 1}},
                    )
            except Exception as e:
                logger.warning("Failed to store success feedback", session_id=store_session_id, error=str(e))

        if not isinstance(self.provider, SuccessFeedbackSink):
            session_operations_total.labels(operation="success_feedback", outcome="unsupported").inc()
            return
        try:
            await self.provider.send_success_feedback(
                session_id,
                config.success_message,
                {"attempt_number": attempt, "validated_output": value, "timestamp": to_iso(utc_now())},
            )
        except Exception as e:
            session_operations_total.labels(operation="success_feedback", outcome="error").inc()
            logger.warning(
                "Failed to send success feedback",
                provider=self.provider.name,
                session_id=session_id,
                attempt=attempt,
                error=str(e),
            )
            return
        session_operations_total.labels(operation="success_feedback", outcome="success").inc()
        logger.info("Success feedback sent", session_id=session_id, attempt=attempt)

    async def _enhance(
        self,
        config: RunConfiguration,
        options: dict[str, Any],
        baseline: Any,
        session_id: Optional[str],
        store_session_id: Optional[str],
    ) -> tuple[Any, int, Optional[TokenUsage]]:
        """
        Run the configured enhancement rounds against a validated value.

        Returns:
            (best value, rounds that got a provider response, tokens used by the rounds)
        """
        enhancement = config.enhancement
        current = baseline
        completed = 0
        token_usage: Optional[TokenUsage] = None

        logger.info(
            "Starting enhancement rounds",
            rounds=enhancement.rounds,
            strategy=enhancement.strategy,
            min_improvement=enhancement.min_improvement,
        )

        for round_number in range(1, enhancement.rounds + 1):
            try:
                instruction = build_enhancement_prompt(enhancement, current, round_number)
                prompt = combine_enhancement_prompt(config, instruction, current)
                response = await self.provider.send_prompt(session_id, prompt, options)
            except Exception as e:
                enhancement_rounds_total.labels(outcome="error").inc()
                logger.warning("Enhancement round failed", round=round_number, error=str(e))
                continue

            completed += 1
            if response.token_usage is not None:
                token_usage = response.token_usage if token_usage is None else token_usage + response.token_usage
            if self.session_store is not None and store_session_id:
                await self._record_turn(store_session_id, response.token_usage)

            outcome = self.validation_pipeline.validate(
                response.content,
                config.output_schema,
                attempt=1,
                supports_session=self.provider.supports_session,
            )
            if not outcome.success:
                enhancement_rounds_total.labels(outcome="invalid").inc()
                logger.warning(
                    "Enhancement round failed validation",
                    round=round_number,
                    code=outcome.error.code.value,
                )
                continue

            try:
                score = evaluate_improvement(enhancement, current, outcome.value)
            except Exception as e:
                enhancement_rounds_total.labels(outcome="error").inc()
                logger.warning("Improvement evaluation failed", round=round_number, error=str(e))
                continue

            if score >= enhancement.min_improvement:
                current = outcome.value
                enhancement_rounds_total.labels(outcome="accepted").inc()
                logger.info("Enhancement accepted", round=round_number, score=score)
            else:
                enhancement_rounds_total.labels(outcome="rejected").inc()
                logger.debug("Enhancement rejected", round=round_number, score=score)

        logger.info(
            "Enhancement rounds completed",
            rounds=enhancement.rounds,
            completed=completed,
            improved=current is not baseline,
        )
        return current, completed, token_usage

    async def execute(
        self,
        config: RunConfiguration,
        session_id: Optional[str] = None,
        store_session_id: Optional[str] = None,
    ) -> ExecutionResult:
        """
        Run the attempt loop.

        Args:
            config: Resolved run configuration
            session_id: Provider-native session id, None for one-shot calls
            store_session_id: Store record that receives per-turn usage

        Returns:
            ExecutionResult holding either the validated value or the last error
        """
        max_attempts = config.max_attempts
        options = self._build_options(config)
        token_usage: Optional[TokenUsage] = None
        last_error: Optional[ExtractionError] = None
        attempt = 0
        start_time = time.time()

        logger.info(
            "Starting execution",
            provider=self.provider.name,
            model=config.model,
            max_attempts=max_attempts,
            session_id=session_id,
        )

        while attempt < max_attempts:
            attempt += 1
            parts = self.prompt_builder.build_prompt(config, attempt)
            if last_error is not None:
                feedback = format_validation_feedback(last_error, attempt, max_attempts)
                parts = augment_prompt_with_errors(parts, feedback)
            prompt = combine_prompt_parts(parts)

            turn_tokens: Optional[TokenUsage] = None
            try:
                response = await self.provider.send_prompt(session_id, prompt, options)
            except Exception as e:
                logger.warning(
                    "Provider call failed",
                    provider=self.provider.name,
                    attempt=attempt,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                error: ExtractionError = self._provider_error(e)
                outcome = None
            else:
                turn_tokens = response.token_usage
                if turn_tokens is not None:
                    token_usage = turn_tokens if token_usage is None else token_usage + turn_tokens
                outcome = self.validation_pipeline.validate(
                    response.content,
                    config.output_schema,
                    attempt=attempt,
                    supports_session=self.provider.supports_session,
                )

            if self.session_store is not None and store_session_id:
                await self._record_turn(store_session_id, turn_tokens)

            if outcome is not None and outcome.success:
                attempts_total.labels(outcome="success").inc()
                if attempt > 1:
                    retries_total.labels(strategy="feedback", success="true").inc()
                if config.success_message and session_id:
                    await self._send_success_feedback(config, session_id, store_session_id, outcome.value, attempt)

                value = outcome.value
                attempts = attempt
                if config.enhancement is not None and config.enhancement.rounds > 0:
                    value, completed, round_tokens = await self._enhance(
                        config, options, value, session_id, store_session_id
                    )
                    attempts += completed
                    if round_tokens is not None:
                        token_usage = round_tokens if token_usage is None else token_usage + round_tokens

                logger.info(
                    "Execution succeeded",
                    attempts=attempts,
                    latency_ms=int((time.time() - start_time) * 1000),
                )
                return ExecutionResult(success=True, attempts=attempts, value=value, token_usage=token_usage)

            if outcome is not None:
                error = outcome.error
            attempts_total.labels(outcome=error.type).inc()
            last_error = error
            recovery = analyze_error(
                error, self.provider, attempt, threshold=self.settings.PERSISTENT_FAILURE_THRESHOLD
            )

            if not error.retryable:
                logger.warning("Error is not retryable, stopping", attempt=attempt, code=error.code.value)
                break

        if attempt > 1:
            retries_total.labels(strategy="feedback", success="false").inc()
        logger.error(
            "Execution exhausted",
            attempts=attempt,
            max_attempts=max_attempts,
            error_type=last_error.type,
            error_code=last_error.code.value,
            latency_ms=int((time.time() - start_time) * 1000),
        )
        return ExecutionResult(
            success=False,
            attempts=attempt,
            error=last_error,
            token_usage=token_usage,
            recovery=recovery,
        )
