"""
Error and recovery models.

Failures on the result path are plain data rather than exceptions: the
retry engine inspects a ``ValidationError`` or ``ProviderError`` value and
decides what to do next. The two are discriminated by their ``type`` field
so a public result can carry either one.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from extraction_layer.models.enums import (
    ErrorCategory,
    ErrorSeverity,
    ProviderErrorCode,
    RecoveryAction,
    RetryStrategyHint,
    SuggestionPriority,
    ValidationErrorCode,
)
from extraction_layer.models.timestamps import utc_now


class ValidationIssue(BaseModel):
    """
    One discrete schema non-conformance reported by a schema adapter.

    ``code`` is usually an ``IssueCode`` value but adapters may report
    library-specific codes; those are echoed back to the model verbatim.
    """
    model_config = ConfigDict(frozen=True)

    path: list[Union[str, int]] = Field(default_factory=list, description="Field path, outermost first")
    code: str = Field(..., description="Issue category code")
    message: str = Field(..., description="Human-readable message from the schema library")
    expected: Optional[str] = None
    received: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    value_type: Optional[str] = Field(
        default=None, description="For size issues: string | number | array"
    )
    options: Optional[list[Any]] = None
    keys: Optional[list[str]] = None
    validation: Optional[str] = Field(
        default=None, description="For string format issues: email | url | uuid | regex ..."
    )
    value: Any = None


class ValidationSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    issue_type: str
    suggestion: str
    priority: SuggestionPriority


class StructuredFeedback(BaseModel):
    model_config = ConfigDict(frozen=True)

    problem_summary: str
    specific_issues: list[str] = Field(default_factory=list)
    correction_instructions: list[str] = Field(default_factory=list)


class ValidationError(BaseModel):
    """Model output failed JSON parsing or schema validation."""
    model_config = ConfigDict(frozen=True)

    type: Literal["validation"] = "validation"
    code: ValidationErrorCode
    message: str
    issues: list[ValidationIssue] = Field(default_factory=list)
    raw_value: Optional[str] = Field(default=None, description="Unparsed provider output")
    retry_strategy: RetryStrategyHint
    failure_mode: Optional[ValidationErrorCode] = None
    structured_feedback: Optional[StructuredFeedback] = None
    suggestions: list[str] = Field(default_factory=list)
    retryable: bool = True
    timestamp: datetime = Field(default_factory=utc_now)
    details: dict[str, Any] = Field(default_factory=dict)


class ProviderError(BaseModel):
    """The provider call, or the session plumbing around it, failed."""
    model_config = ConfigDict(frozen=True)

    type: Literal["provider"] = "provider"
    code: ProviderErrorCode
    message: str
    provider: str
    provider_code: Optional[str] = Field(
        default=None, description="Finer-grained code reported by the adapter"
    )
    retryable: bool = False
    suggestions: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)
    details: dict[str, Any] = Field(default_factory=dict)


ExtractionError = Annotated[Union[ValidationError, ProviderError], Field(discriminator="type")]


class RecoveryStrategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    strategy: RecoveryAction
    reason: str
    suggestions: list[str] = Field(default_factory=list)
    retryable: bool


class ErrorClassification(BaseModel):
    model_config = ConfigDict(frozen=True)

    severity: ErrorSeverity
    category: ErrorCategory
    recoverable: bool
    user_action_required: bool
