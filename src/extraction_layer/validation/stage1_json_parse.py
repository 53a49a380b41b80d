"""
Stage 1: JSON Parse.

Parse raw provider output (string) into a Python value. Failures are
returned as data so the retry engine can branch on the error code.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from extraction_layer.models.enums import ValidationErrorCode
from extraction_layer.monitoring.metrics import validation_failures_total

logger = structlog.get_logger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*\n(?P<body>.*)\n\s*```$", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of stage 1; ``code`` and ``message`` are set only on failure."""

    success: bool
    value: Any = None
    code: Optional[ValidationErrorCode] = None
    message: Optional[str] = None
    parse_error: Optional[str] = None


def strip_code_fence(content: str) -> str:
    """Unwrap a response wrapped in a single Markdown code fence."""
    match = _CODE_FENCE.match(content.strip())
    if match:
        return match.group("body")
    return content


class Stage1JSONParse:
    """Stage 1 validator: parse the response text as JSON."""

    def validate(self, content: Optional[str]) -> ParseResult:
        """
        Parse JSON content from a provider response.

        Args:
            content: Raw text returned by the provider

        Returns:
            ParseResult carrying the parsed value, or an ``empty_response`` /
            ``invalid_json`` failure
        """
        if not content or not content.strip():
            validation_failures_total.labels(
                stage="stage1", error_type=ValidationErrorCode.EMPTY_RESPONSE.value
            ).inc()
            return ParseResult(
                success=False,
                code=ValidationErrorCode.EMPTY_RESPONSE,
                message="LLM response content is empty or whitespace-only",
                parse_error="Empty content",
            )

        try:
            parsed = json.loads(strip_code_fence(content))
        except json.JSONDecodeError as e:
            validation_failures_total.labels(
                stage="stage1", error_type=ValidationErrorCode.INVALID_JSON.value
            ).inc()
            return ParseResult(
                success=False,
                code=ValidationErrorCode.INVALID_JSON,
                message=f"Failed to parse LLM response as JSON: {e.msg}",
                parse_error=f"{e.msg} at line {e.lineno} col {e.colno}",
            )

        logger.debug("Stage 1: parsed JSON", value_type=type(parsed).__name__)
        return ParseResult(success=True, value=parsed)
