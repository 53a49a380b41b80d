"""
Response validation and feedback generation.

Components:
- Stage1JSONParse: raw text -> decoded JSON value
- Stage 2 schema adapters: PydanticSchema, JSONSchema, as_schema
- ValidationPipeline: runs both stages, returns a ValidationOutcome
- Feedback generator: suggestions, corrections and escalating feedback text
"""

from extraction_layer.validation.error_factory import (
    create_json_error,
    create_schema_error,
    select_retry_strategy,
)
from extraction_layer.validation.feedback import (
    build_structured_feedback,
    extract_field_errors,
    format_validation_feedback,
    format_validation_issues,
    get_urgency_prefix,
)
from extraction_layer.validation.pipeline import (
    ValidationOutcome,
    ValidationPipeline,
    validate_response,
)
from extraction_layer.validation.stage1_json_parse import ParseResult, Stage1JSONParse
from extraction_layer.validation.stage2_schema import (
    JSONSchema,
    PydanticSchema,
    SchemaAdapter,
    SchemaCheck,
    as_schema,
)
from extraction_layer.validation.suggestions import (
    GENERAL_SUGGESTIONS,
    create_structured_suggestions,
    format_path,
    generate_corrections,
    generate_validation_suggestions,
)

__all__ = [
    # Stages
    "Stage1JSONParse",
    "ParseResult",
    "SchemaAdapter",
    "SchemaCheck",
    "PydanticSchema",
    "JSONSchema",
    "as_schema",
    # Pipeline
    "ValidationPipeline",
    "ValidationOutcome",
    "validate_response",
    # Errors
    "create_json_error",
    "create_schema_error",
    "select_retry_strategy",
    # Feedback
    "GENERAL_SUGGESTIONS",
    "build_structured_feedback",
    "create_structured_suggestions",
    "extract_field_errors",
    "format_path",
    "format_validation_feedback",
    "format_validation_issues",
    "generate_corrections",
    "generate_validation_suggestions",
    "get_urgency_prefix",
]
