"""
Run-level models: the immutable configuration of one extraction run, the
engine's raw outcome, and the public result envelope.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from extraction_layer.models.enums import EnhancementStrategy
from extraction_layer.models.errors import ExtractionError, RecoveryStrategy
from extraction_layer.models.llm_models import TokenUsage
from extraction_layer.models.timestamps import to_iso


class _Missing:
    """Marker for "no value produced", distinct from a JSON ``null``."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

DEFAULT_MIN_IMPROVEMENT = 0.2
MAX_ENHANCEMENT_ROUNDS = 5


class EnhancementConfig(BaseModel):
    """
    Extra rounds that try to improve a result after it first validates.

    A round's output replaces the current best only when it validates and
    scores at least ``min_improvement``. ``custom_prompt(current, round)``
    and ``evaluate_improvement(baseline, enhanced)`` override the strategy's
    built-in prompt and scoring.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    rounds: int = 0
    strategy: str = EnhancementStrategy.EXPAND_ARRAY.value
    min_improvement: float = DEFAULT_MIN_IMPROVEMENT
    custom_prompt: Optional[Callable[[Any, int], str]] = None
    evaluate_improvement: Optional[Callable[[Any, Any], float]] = None

    @field_validator("strategy", mode="before")
    @classmethod
    def _strategy_value(cls, value: Any) -> Any:
        return value.value if isinstance(value, EnhancementStrategy) else value


class RunConfiguration(BaseModel):
    """
    Fully resolved configuration of a single run.

    Built once by ``process_configuration`` and never mutated afterwards.
    ``output_schema`` holds a ``SchemaAdapter``.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    output_schema: Any = Field(..., description="SchemaAdapter the output must satisfy")
    input: Any = Field(..., description="Input data handed to the model")
    context: Optional[str] = None
    lens: Optional[str] = Field(default=None, description="Perspective the model should take")
    retries: int = Field(..., ge=0)
    model: str
    temperature: float = Field(..., ge=0.0, le=2.0)
    max_tokens: int = Field(..., ge=1)
    provider_options: dict[str, Any] = Field(default_factory=dict)
    example_output: Any = None
    session_id: Optional[str] = None
    enhancement: Optional[EnhancementConfig] = None
    success_message: Optional[str] = Field(
        default=None, description="Sent into the session after each validated attempt"
    )

    @property
    def max_attempts(self) -> int:
        return self.retries + 1


@dataclass(frozen=True)
class ExecutionResult:
    """
    Raw outcome of the retry loop.

    Attributes:
        success: Whether a schema-conformant value was produced
        attempts: Attempts consumed, 0 when the loop never started
        value: Validated value, ``MISSING`` on failure
        error: Last error, ``None`` on success
        token_usage: Tokens summed over every attempt that reported usage
        recovery: Recovery advice for the final error
    """

    success: bool
    attempts: int
    value: Any = MISSING
    error: Optional[ExtractionError] = None
    token_usage: Optional[TokenUsage] = None
    recovery: Optional[RecoveryStrategy] = None

    def __post_init__(self) -> None:
        if self.attempts < 0:
            raise ValueError("attempts must be >= 0")
        if self.success and self.error is not None:
            raise ValueError("a successful result cannot carry an error")
        if not self.success and self.value is not MISSING:
            raise ValueError("a failed result cannot carry a value")


class ExecutionMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    execution_time_ms: int = Field(..., ge=0)
    started_at: datetime
    completed_at: datetime
    provider: str
    model: Optional[str] = None
    token_usage: Optional[TokenUsage] = None

    @field_serializer("started_at", "completed_at")
    def _serialize_timestamps(self, value: datetime) -> str:
        return to_iso(value)


class PipelineResult(BaseModel):
    """Public result envelope. ``error`` is always populated when ``ok`` is false."""
    model_config = ConfigDict(frozen=True)

    ok: bool
    value: Any = None
    error: Optional[ExtractionError] = None
    attempts: int = Field(..., ge=0)
    session_id: Optional[str] = None
    metadata: ExecutionMetadata
    recovery: Optional[RecoveryStrategy] = None
