"""
Validation Pipeline: two-stage response validation.

- Stage 1: JSON parse (``empty_response`` / ``invalid_json``)
- Stage 2: Schema validation (``schema_mismatch``)

The pipeline never raises for a bad response; it returns a
``ValidationOutcome`` the retry engine branches on.
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from extraction_layer.models.enums import ValidationErrorCode
from extraction_layer.models.errors import ValidationError
from extraction_layer.monitoring.metrics import validation_failures_total
from extraction_layer.validation.error_factory import (
    DEFAULT_PERSISTENT_FAILURE_THRESHOLD,
    create_json_error,
    create_schema_error,
)
from extraction_layer.validation.stage1_json_parse import Stage1JSONParse
from extraction_layer.validation.stage2_schema import SchemaAdapter

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ValidationOutcome:
    success: bool
    value: Any = None
    error: Optional[ValidationError] = None


class ValidationPipeline:
    """
    Validates provider output against a schema adapter.

    Args:
        persistent_failure_threshold: Attempt number from which schema
            failures escalate to a session reset / configuration change hint
    """

    def __init__(self, persistent_failure_threshold: int = DEFAULT_PERSISTENT_FAILURE_THRESHOLD):
        self.persistent_failure_threshold = persistent_failure_threshold
        self.stage1 = Stage1JSONParse()

    def validate(
        self,
        content: Optional[str],
        schema: SchemaAdapter,
        attempt: int,
        supports_session: bool,
    ) -> ValidationOutcome:
        """
        Run both stages on raw provider output.

        Args:
            content: Raw text returned by the provider
            schema: Schema the decoded value must satisfy
            attempt: Attempt number that produced ``content``
            supports_session: Whether the active provider supports sessions

        Returns:
            ValidationOutcome with the validated value, or the error to feed back
        """
        parsed = self.stage1.validate(content)
        if not parsed.success:
            logger.info("Stage 1 failed", code=parsed.code.value, attempt=attempt)
            return ValidationOutcome(
                success=False,
                error=create_json_error(parsed.code, parsed.message, content, parsed.parse_error),
            )

        check = schema.validate(parsed.value)
        if check.success:
            logger.debug("Validation completed successfully", attempt=attempt)
            return ValidationOutcome(success=True, value=check.value)

        validation_failures_total.labels(
            stage="stage2", error_type=ValidationErrorCode.SCHEMA_MISMATCH.value
        ).inc()
        error = create_schema_error(
            check.issues,
            raw_value=content,
            attempt=attempt,
            supports_session=supports_session,
            threshold=self.persistent_failure_threshold,
            schema_name=getattr(schema, "name", None),
        )
        logger.info(
            "Stage 2 failed",
            attempt=attempt,
            issue_count=len(check.issues),
            retry_strategy=error.retry_strategy.value,
        )
        return ValidationOutcome(success=False, error=error)


def validate_response(
    content: Optional[str],
    schema: SchemaAdapter,
    attempt: int = 1,
    supports_session: bool = False,
    persistent_failure_threshold: int = DEFAULT_PERSISTENT_FAILURE_THRESHOLD,
) -> ValidationOutcome:
    """Convenience wrapper around ``ValidationPipeline.validate``."""
    pipeline = ValidationPipeline(persistent_failure_threshold)
    return pipeline.validate(content, schema, attempt, supports_session)
