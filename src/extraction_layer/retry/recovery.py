"""
Error classification and recovery advice.

A pure decision table: given an error, the active provider and the attempt
number, decide how severe the failure is and what should happen next. The
retry engine logs the advice on every failure and attaches it to the final
result; the result processor borrows its suggestions when an error has none.
"""

from typing import Any, Union

import structlog

from extraction_layer.models.enums import (
    ErrorCategory,
    ErrorSeverity,
    ProviderErrorCode,
    RecoveryAction,
    RetryStrategyHint,
    ValidationErrorCode,
)
from extraction_layer.models.errors import (
    ErrorClassification,
    ProviderError,
    RecoveryStrategy,
    ValidationError,
)
from extraction_layer.validation.error_factory import DEFAULT_PERSISTENT_FAILURE_THRESHOLD

logger = structlog.get_logger(__name__)

SESSION_ERROR_CODES = (
    ProviderErrorCode.SESSION_CREATION_FAILED,
    ProviderErrorCode.SESSION_NOT_SUPPORTED,
    ProviderErrorCode.SESSION_COORDINATION_FAILED,
)
TRANSIENT_PROVIDER_CODES = (ProviderErrorCode.RATE_LIMITED, ProviderErrorCode.PROVIDER_UNAVAILABLE)
CONFIGURATION_PROVIDER_CODES = (
    ProviderErrorCode.AUTHENTICATION_FAILED,
    ProviderErrorCode.INVALID_CONFIGURATION,
)


# =============================================================================
# Provider errors
# =============================================================================

SESSION_ISSUE = RecoveryStrategy(
    strategy=RecoveryAction.CONFIGURATION_CHANGE,
    reason="Session management issue detected",
    suggestions=[
        "Run without a session id to skip session handling",
        "Verify that the provider actually supports sessions",
        "Check provider authentication and permissions",
    ],
    retryable=False,
)

TRANSIENT_PROVIDER_ISSUE = RecoveryStrategy(
    strategy=RecoveryAction.RETRY,
    reason="Transient provider issue - retry with backoff",
    suggestions=[
        "Wait before retrying to respect rate limits",
        "Consider reducing request frequency",
        "Check the provider status page for ongoing incidents",
    ],
    retryable=True,
)

PROVIDER_CONFIGURATION_ISSUE = RecoveryStrategy(
    strategy=RecoveryAction.MANUAL_INTERVENTION,
    reason="Provider configuration or authentication issue",
    suggestions=[
        "Verify API keys and authentication credentials",
        "Check provider configuration settings and model name",
        "Ensure the provider is installed and reachable",
    ],
    retryable=False,
)

PROVIDER_CALL_RETRY = RecoveryStrategy(
    strategy=RecoveryAction.RETRY,
    reason="Transient provider communication failure",
    suggestions=[
        "Retry with exponential backoff",
        "Check network connectivity",
        "Monitor for persistent failures",
    ],
    retryable=True,
)

UNRESOLVED_PROVIDER_ISSUE = RecoveryStrategy(
    strategy=RecoveryAction.MANUAL_INTERVENTION,
    reason="Unrecognized provider error requires investigation",
    suggestions=[
        "Check provider documentation for error details",
        "Verify provider service availability",
        "Consider switching to an alternative provider",
    ],
    retryable=False,
)

# =============================================================================
# Validation errors
# =============================================================================

CONTEXT_CONFUSION = RecoveryStrategy(
    strategy=RecoveryAction.SESSION_RESET,
    reason="Multiple validation failures suggest context confusion",
    suggestions=[
        "Reset the session to clear potentially confusing context",
        "Review schema complexity and clarity",
        "Provide a more specific example output",
        "Verify that the task is achievable with the current model",
    ],
    retryable=True,
)

PERSISTENT_VALIDATION_FAILURE = RecoveryStrategy(
    strategy=RecoveryAction.CONFIGURATION_CHANGE,
    reason="Multiple validation failures without session support",
    suggestions=[
        "Review and simplify the schema definition",
        "Provide a clearer example output",
        "Consider splitting a complex schema into smaller parts",
        "Adjust context or lens for better guidance",
    ],
    retryable=False,
)

STRUCTURAL_OUTPUT_ERROR = RecoveryStrategy(
    strategy=RecoveryAction.RETRY,
    reason="Structural output error - retry with format clarification",
    suggestions=[
        "Emphasize JSON format requirements in the prompt",
        "Provide a concrete output example",
        "Check for common JSON formatting issues",
    ],
    retryable=True,
)

GENERAL_VALIDATION_FAILURE = RecoveryStrategy(
    strategy=RecoveryAction.RETRY,
    reason="General validation failure - attempt retry with feedback",
    suggestions=[
        "Review validation error details",
        "Adjust input or prompt based on feedback",
        "Consider simplifying the requested output format",
    ],
    retryable=True,
)

UNKNOWN_ERROR_SHAPE = RecoveryStrategy(
    strategy=RecoveryAction.MANUAL_INTERVENTION,
    reason="Unknown error type requires manual analysis",
    suggestions=[
        "Check error logs for additional context",
        "Verify pipeline configuration",
        "Contact support if the issue persists",
    ],
    retryable=False,
)


def _analyze_provider_error(error: ProviderError, attempt: int, threshold: int) -> RecoveryStrategy:
    if error.code in SESSION_ERROR_CODES:
        return SESSION_ISSUE
    if error.code in TRANSIENT_PROVIDER_CODES:
        return TRANSIENT_PROVIDER_ISSUE
    if error.code in CONFIGURATION_PROVIDER_CODES:
        return PROVIDER_CONFIGURATION_ISSUE
    if error.code == ProviderErrorCode.PROVIDER_CALL_FAILED and attempt < threshold:
        return PROVIDER_CALL_RETRY
    return UNRESOLVED_PROVIDER_ISSUE


def _analyze_validation_error(
    error: ValidationError, supports_session: bool, attempt: int, threshold: int
) -> RecoveryStrategy:
    if attempt >= threshold:
        return CONTEXT_CONFUSION if supports_session else PERSISTENT_VALIDATION_FAILURE
    if error.retry_strategy in (RetryStrategyHint.ADD_EXAMPLES, RetryStrategyHint.DEMAND_JSON_FORMAT):
        return RecoveryStrategy(
            strategy=RecoveryAction.RETRY,
            reason="Validation error with clear feedback - retry with guidance",
            suggestions=list(error.suggestions),
            retryable=True,
        )
    if error.code in (ValidationErrorCode.INVALID_JSON, ValidationErrorCode.SCHEMA_MISMATCH):
        return STRUCTURAL_OUTPUT_ERROR
    return GENERAL_VALIDATION_FAILURE


def analyze_error(
    error: Any,
    provider: Any,
    attempt: int,
    threshold: int = DEFAULT_PERSISTENT_FAILURE_THRESHOLD,
) -> RecoveryStrategy:
    """
    Recommend a recovery strategy.

    Args:
        error: ValidationError or ProviderError (anything else is treated
            as an unrecognized error shape)
        provider: Active provider; only ``name`` and ``supports_session`` are read
        attempt: Attempt number that produced the error
        threshold: Attempt number from which failures count as persistent;
            must match the validation pipeline's threshold

    Returns:
        RecoveryStrategy describing what should happen next
    """
    classification = classify_error(error)
    supports_session = bool(getattr(provider, "supports_session", False))

    if isinstance(error, ProviderError):
        strategy = _analyze_provider_error(error, attempt, threshold)
    elif isinstance(error, ValidationError):
        strategy = _analyze_validation_error(error, supports_session, attempt, threshold)
    else:
        strategy = UNKNOWN_ERROR_SHAPE

    code = getattr(error, "code", None)
    logger.warning(
        "Error recovery analysis",
        error_type=getattr(error, "type", type(error).__name__),
        error_code=getattr(code, "value", code),
        severity=classification.severity.value,
        category=classification.category.value,
        strategy=strategy.strategy.value,
        retryable=strategy.retryable,
        attempt=attempt,
        provider=getattr(provider, "name", None),
    )
    return strategy


def _classify_provider_error(error: ProviderError) -> ErrorClassification:
    if error.code in TRANSIENT_PROVIDER_CODES:
        return ErrorClassification(
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.TRANSIENT,
            recoverable=True,
            user_action_required=False,
        )
    if error.code in SESSION_ERROR_CODES or error.code in CONFIGURATION_PROVIDER_CODES:
        return ErrorClassification(
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CONFIGURATION,
            recoverable=False,
            user_action_required=True,
        )
    if error.code == ProviderErrorCode.PROVIDER_CALL_FAILED:
        return ErrorClassification(
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.PROVIDER,
            recoverable=True,
            user_action_required=False,
        )
    return ErrorClassification(
        severity=ErrorSeverity.MEDIUM,
        category=ErrorCategory.PROVIDER,
        recoverable=error.retryable,
        user_action_required=not error.retryable,
    )


def _classify_validation_error(error: ValidationError) -> ErrorClassification:
    if error.code in (
        ValidationErrorCode.INVALID_JSON,
        ValidationErrorCode.EMPTY_RESPONSE,
    ):
        return ErrorClassification(
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.TRANSIENT,
            recoverable=True,
            user_action_required=False,
        )
    if error.code in (ValidationErrorCode.SCHEMA_MISMATCH, ValidationErrorCode.VALIDATION_FAILED):
        return ErrorClassification(
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.PROVIDER,
            recoverable=True,
            user_action_required=False,
        )
    if error.code in (ValidationErrorCode.CONTEXT_CONFUSION, ValidationErrorCode.FORMAT_CONFUSION):
        return ErrorClassification(
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.TRANSIENT,
            recoverable=True,
            user_action_required=False,
        )
    return ErrorClassification(
        severity=ErrorSeverity.MEDIUM,
        category=ErrorCategory.SYSTEM,
        recoverable=error.retryable,
        user_action_required=not error.retryable,
    )


def classify_error(error: Union[ValidationError, ProviderError, Any]) -> ErrorClassification:
    """Severity / category classification of an error."""
    if isinstance(error, ProviderError):
        return _classify_provider_error(error)
    if isinstance(error, ValidationError):
        return _classify_validation_error(error)
    return ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        category=ErrorCategory.SYSTEM,
        recoverable=False,
        user_action_required=True,
    )
