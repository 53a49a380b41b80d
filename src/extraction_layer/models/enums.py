"""
Enumerations shared across the extraction layer.

All enums subclass ``str`` so they serialize to their plain values in
JSON output and compare equal to string literals.
"""

from enum import Enum


class ProviderErrorCode(str, Enum):
    """Failure codes attributed to the provider or to session plumbing."""

    PROVIDER_CALL_FAILED = "provider_call_failed"
    SESSION_CREATION_FAILED = "session_creation_failed"
    SESSION_NOT_SUPPORTED = "session_not_supported"
    RATE_LIMITED = "rate_limited"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    AUTHENTICATION_FAILED = "authentication_failed"
    INVALID_CONFIGURATION = "invalid_configuration"
    ORCHESTRATION_FAILED = "orchestration_failed"
    PRELOAD_EXECUTION_FAILED = "preload_execution_failed"
    PRELOAD_ORCHESTRATION_FAILED = "preload_orchestration_failed"
    SESSION_COORDINATION_FAILED = "session_coordination_failed"


class ValidationErrorCode(str, Enum):
    """Failure codes attributed to the model output."""

    INVALID_JSON = "invalid_json"
    EMPTY_RESPONSE = "empty_response"
    SCHEMA_MISMATCH = "schema_mismatch"
    VALIDATION_FAILED = "validation_failed"
    CONTEXT_CONFUSION = "context_confusion"
    FORMAT_CONFUSION = "format_confusion"
    UNKNOWN_ERROR = "unknown_error"


class RetryStrategyHint(str, Enum):
    """How the next prompt should be adjusted after a validation failure."""

    ADD_EXAMPLES = "add_examples"
    DEMAND_JSON_FORMAT = "demand_json_format"
    SESSION_RESET = "session_reset"
    CONFIGURATION_CHANGE = "configuration_change"


class RecoveryAction(str, Enum):
    RETRY = "retry"
    SESSION_RESET = "session_reset"
    CONFIGURATION_CHANGE = "configuration_change"
    MANUAL_INTERVENTION = "manual_intervention"


class IssueCode(str, Enum):
    """Schema issue categories understood by the feedback generator.

    Schema adapters may emit codes outside this set; those are treated as
    unknown and echoed back verbatim.
    """

    INVALID_TYPE = "invalid_type"
    TOO_SMALL = "too_small"
    TOO_BIG = "too_big"
    INVALID_ENUM_VALUE = "invalid_enum_value"
    INVALID_UNION = "invalid_union"
    UNRECOGNIZED_KEYS = "unrecognized_keys"
    INVALID_STRING = "invalid_string"


class SuggestionPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    TRANSIENT = "transient"
    CONFIGURATION = "configuration"
    PROVIDER = "provider"
    SYSTEM = "system"


class EnhancementStrategy(str, Enum):
    """How enhancement rounds ask the model to improve a valid result."""

    EXPAND_ARRAY = "expand-array"
    EXPAND_DETAIL = "expand-detail"
    EXPAND_VARIETY = "expand-variety"
    CUSTOM = "custom"
