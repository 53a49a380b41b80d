"""
Result processing: ExecutionResult -> public PipelineResult envelope.

Guarantees on every envelope built here:
- ``ok`` is true only when a value was produced
- a failed envelope always carries an error
- that error carries at least one suggestion
"""

import time
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from extraction_layer.models.enums import RetryStrategyHint, ValidationErrorCode
from extraction_layer.models.errors import ExtractionError, ValidationError
from extraction_layer.models.run_models import MISSING, ExecutionMetadata, ExecutionResult, PipelineResult
from extraction_layer.models.timestamps import utc_now
from extraction_layer.retry.recovery import analyze_error
from extraction_layer.validation.error_factory import DEFAULT_PERSISTENT_FAILURE_THRESHOLD

logger = structlog.get_logger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unknown error occurred during processing"
UNKNOWN_ERROR_SUGGESTIONS = ["Please try again or contact support"]


def _unknown_error() -> ValidationError:
    return ValidationError(
        code=ValidationErrorCode.UNKNOWN_ERROR,
        message=UNKNOWN_ERROR_MESSAGE,
        retry_strategy=RetryStrategyHint.SESSION_RESET,
        failure_mode=ValidationErrorCode.CONTEXT_CONFUSION,
        suggestions=list(UNKNOWN_ERROR_SUGGESTIONS),
    )


def _ensure_suggestions(
    error: ExtractionError, provider: Any, attempts: int, threshold: int
) -> ExtractionError:
    if error.suggestions:
        return error
    advice = analyze_error(error, provider, max(attempts, 1), threshold=threshold)
    return error.model_copy(update={"suggestions": list(advice.suggestions)})


def build_execution_metadata(
    started_at: float, provider: Any, model: Optional[str], token_usage=None
) -> ExecutionMetadata:
    """Timing and provider metadata for a run that started at ``started_at`` (epoch seconds)."""
    completed_at = utc_now()
    execution_time_ms = max(0, int((time.time() - started_at) * 1000))
    return ExecutionMetadata(
        execution_time_ms=execution_time_ms,
        started_at=datetime.fromtimestamp(started_at, tz=timezone.utc),
        completed_at=completed_at,
        provider=getattr(provider, "name", None) or type(provider).__name__,
        model=model,
        token_usage=token_usage,
    )


def process_result(
    execution_result: ExecutionResult,
    session_id: Optional[str],
    started_at: float,
    provider: Any,
    model: Optional[str],
    threshold: int = DEFAULT_PERSISTENT_FAILURE_THRESHOLD,
) -> PipelineResult:
    """
    Wrap an engine outcome in the public envelope.

    Args:
        execution_result: Outcome of ``ExecutionEngine.execute``
        session_id: Session the run executed in, if any
        started_at: Run start time, epoch seconds
        provider: Provider adapter that served the run
        model: Model identifier used
        threshold: Persistent-failure threshold used to pick fallback suggestions

    Returns:
        PipelineResult with timing metadata attached
    """
    metadata = build_execution_metadata(started_at, provider, model, execution_result.token_usage)
    ok = execution_result.success and execution_result.value is not MISSING

    if ok:
        result = PipelineResult(
            ok=True,
            value=execution_result.value,
            attempts=execution_result.attempts,
            session_id=session_id,
            metadata=metadata,
        )
        logger.info(
            "Pipeline completed successfully",
            attempts=result.attempts,
            execution_time_ms=metadata.execution_time_ms,
            session_id=session_id,
        )
        return result

    error = execution_result.error
    if error is None:
        logger.warning("Failed execution carried no error, substituting unknown_error")
        error = _unknown_error()
    error = _ensure_suggestions(error, provider, execution_result.attempts, threshold)

    result = PipelineResult(
        ok=False,
        error=error,
        attempts=execution_result.attempts,
        session_id=session_id,
        metadata=metadata,
        recovery=execution_result.recovery,
    )
    logger.warning(
        "Pipeline failed",
        attempts=result.attempts,
        error_type=error.type,
        error_code=error.code.value,
        execution_time_ms=metadata.execution_time_ms,
    )
    return result


def create_error_result(
    error: ExtractionError,
    attempts: int,
    started_at: float,
    provider: Any,
    model: Optional[str],
    session_id: Optional[str] = None,
    threshold: int = DEFAULT_PERSISTENT_FAILURE_THRESHOLD,
) -> PipelineResult:
    """Failed envelope for errors raised before or around execution."""
    error = _ensure_suggestions(error, provider, attempts, threshold)
    return PipelineResult(
        ok=False,
        error=error,
        attempts=attempts,
        session_id=session_id,
        metadata=build_execution_metadata(started_at, provider, model),
    )


def _efficiency(result: PipelineResult) -> str:
    if result.ok and result.attempts <= 1:
        return "optimal"
    if result.ok and result.attempts <= 3:
        return "good"
    return "poor"


def get_execution_stats(result: PipelineResult) -> dict[str, Any]:
    """Key figures of a run for monitoring and debugging."""
    stats: dict[str, Any] = {
        "successful": result.ok,
        "attempts": result.attempts,
        "execution_time_ms": result.metadata.execution_time_ms,
        "provider": result.metadata.provider,
        "efficiency": _efficiency(result),
        "has_session": bool(result.session_id),
    }
    if result.metadata.model:
        stats["model"] = result.metadata.model
    if not result.ok and result.error is not None:
        stats["error_type"] = result.error.type
    return stats


def format_result_metadata(result: PipelineResult) -> dict[str, Any]:
    formatted: dict[str, Any] = {
        "duration": f"{result.metadata.execution_time_ms}ms",
        "attempts": result.attempts,
        "provider": result.metadata.provider,
        "status": "success" if result.ok else "error",
    }
    if not result.ok and result.error is not None:
        formatted["error_summary"] = f"{result.error.type}:{result.error.code.value} - {result.error.message}"
    return formatted
