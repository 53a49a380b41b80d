"""
Construction of ``ValidationError`` values.

Every validation failure leaves here with its retry strategy, structured
feedback and suggestions filled in, so downstream consumers never have to
re-derive them.
"""

from typing import Optional, Sequence

from extraction_layer.models.enums import IssueCode, RetryStrategyHint, ValidationErrorCode
from extraction_layer.models.errors import ValidationError, ValidationIssue
from extraction_layer.validation.feedback import build_structured_feedback
from extraction_layer.validation.suggestions import generate_validation_suggestions

DEFAULT_PERSISTENT_FAILURE_THRESHOLD = 3

JSON_FORMAT_SUGGESTIONS = (
    "Return only a single JSON value with no surrounding text.",
    "Make sure every bracket, brace and quote is closed.",
    "Do not wrap the JSON in Markdown code fences or add commentary.",
)


def _is_root_type_mismatch(issues: Sequence[ValidationIssue]) -> bool:
    return any(not issue.path and issue.code == IssueCode.INVALID_TYPE for issue in issues)


def select_retry_strategy(
    code: ValidationErrorCode,
    issues: Sequence[ValidationIssue],
    attempt: int,
    supports_session: bool,
    threshold: int = DEFAULT_PERSISTENT_FAILURE_THRESHOLD,
) -> RetryStrategyHint:
    """
    Choose how the next prompt should react to this failure.

    JSON failures always demand stricter formatting. Schema failures add
    examples, or demand JSON when the top-level value has the wrong shape,
    until ``threshold`` attempts have failed; from then on the conversation
    is considered confused and the hint escalates to a session reset, or to
    a configuration change when the provider has no sessions to reset.
    """
    if code in (ValidationErrorCode.INVALID_JSON, ValidationErrorCode.EMPTY_RESPONSE):
        return RetryStrategyHint.DEMAND_JSON_FORMAT
    if attempt >= threshold:
        if supports_session:
            return RetryStrategyHint.SESSION_RESET
        return RetryStrategyHint.CONFIGURATION_CHANGE
    if _is_root_type_mismatch(issues):
        return RetryStrategyHint.DEMAND_JSON_FORMAT
    return RetryStrategyHint.ADD_EXAMPLES


def create_json_error(
    code: ValidationErrorCode,
    message: str,
    raw_value: Optional[str],
    parse_error: Optional[str] = None,
) -> ValidationError:
    return ValidationError(
        code=code,
        message=message,
        raw_value=raw_value,
        retry_strategy=RetryStrategyHint.DEMAND_JSON_FORMAT,
        failure_mode=ValidationErrorCode.FORMAT_CONFUSION,
        suggestions=list(JSON_FORMAT_SUGGESTIONS),
        details={"parse_error": parse_error} if parse_error else {},
    )


def create_schema_error(
    issues: Sequence[ValidationIssue],
    raw_value: Optional[str],
    attempt: int,
    supports_session: bool,
    threshold: int = DEFAULT_PERSISTENT_FAILURE_THRESHOLD,
    schema_name: Optional[str] = None,
) -> ValidationError:
    """Build a ``schema_mismatch`` error with feedback derived from the issues."""
    strategy = select_retry_strategy(
        ValidationErrorCode.SCHEMA_MISMATCH, issues, attempt, supports_session, threshold
    )
    failure_mode = (
        ValidationErrorCode.CONTEXT_CONFUSION
        if strategy in (RetryStrategyHint.SESSION_RESET, RetryStrategyHint.CONFIGURATION_CHANGE)
        else ValidationErrorCode.SCHEMA_MISMATCH
    )
    count = len(issues)
    details = {"issue_count": count, "attempt": attempt}
    if schema_name:
        details["schema"] = schema_name
    return ValidationError(
        code=ValidationErrorCode.SCHEMA_MISMATCH,
        message=f"Schema validation failed with {count} issue{'s' if count != 1 else ''}",
        issues=list(issues),
        raw_value=raw_value,
        retry_strategy=strategy,
        failure_mode=failure_mode,
        structured_feedback=build_structured_feedback(issues),
        suggestions=generate_validation_suggestions(issues),
        details=details,
    )
