"""
Pydantic data models for the LLM Extraction Layer.

Includes:
- Enums (error codes, retry hints, recovery actions, issue codes)
- Error models (ValidationIssue, ValidationError, ProviderError, RecoveryStrategy)
- Provider models (ProviderResponse, TokenUsage, SessionValidation)
- Session models (SessionRecord, SessionMetadata, SessionFilter, SessionStats)
- Run models (RunConfiguration, EnhancementConfig, ExecutionResult, PipelineResult)
"""

from extraction_layer.models.enums import (
    EnhancementStrategy,
    ErrorCategory,
    ErrorSeverity,
    IssueCode,
    ProviderErrorCode,
    RecoveryAction,
    RetryStrategyHint,
    SuggestionPriority,
    ValidationErrorCode,
)
from extraction_layer.models.errors import (
    ErrorClassification,
    ExtractionError,
    ProviderError,
    RecoveryStrategy,
    StructuredFeedback,
    ValidationError,
    ValidationIssue,
    ValidationSuggestion,
)
from extraction_layer.models.llm_models import (
    ProviderResponse,
    SessionValidation,
    TokenUsage,
)
from extraction_layer.models.run_models import (
    MISSING,
    EnhancementConfig,
    ExecutionMetadata,
    ExecutionResult,
    PipelineResult,
    RunConfiguration,
)
from extraction_layer.models.session_models import (
    PROVIDER_SESSION_ID_KEY,
    SessionFilter,
    SessionMetadata,
    SessionRecord,
    SessionStats,
)

__all__ = [
    # Enums
    "EnhancementStrategy",
    "ErrorCategory",
    "ErrorSeverity",
    "IssueCode",
    "ProviderErrorCode",
    "RecoveryAction",
    "RetryStrategyHint",
    "SuggestionPriority",
    "ValidationErrorCode",
    # Errors
    "ErrorClassification",
    "ExtractionError",
    "ProviderError",
    "RecoveryStrategy",
    "StructuredFeedback",
    "ValidationError",
    "ValidationIssue",
    "ValidationSuggestion",
    # Provider
    "ProviderResponse",
    "SessionValidation",
    "TokenUsage",
    # Run
    "MISSING",
    "EnhancementConfig",
    "ExecutionMetadata",
    "ExecutionResult",
    "PipelineResult",
    "RunConfiguration",
    # Sessions
    "PROVIDER_SESSION_ID_KEY",
    "SessionFilter",
    "SessionMetadata",
    "SessionRecord",
    "SessionStats",
]
