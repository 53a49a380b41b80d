"""
Configuration processing: caller options -> immutable RunConfiguration.

Every problem found in the options is collected before raising, so a
single ``ConfigurationError`` reports all of them at once. Messages say
what is wrong and give a working example.
"""

from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from extraction_layer.config import Settings
from extraction_layer.models.enums import EnhancementStrategy
from extraction_layer.models.run_models import (
    DEFAULT_MIN_IMPROVEMENT,
    MAX_ENHANCEMENT_ROUNDS,
    EnhancementConfig,
    RunConfiguration,
)
from extraction_layer.validation.feedback import format_validation_issues
from extraction_layer.validation.stage2_schema import as_schema

logger = structlog.get_logger(__name__)


class ConfigurationError(ValueError):
    """
    Raised when run options are invalid.

    Attributes:
        errors: Every problem found, in the order checked
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            f"Configuration validation failed: {' | '.join(self.errors)}. "
            "This is a problem with the run options, not a schema validation failure of the model output."
        )


class RunOptions(BaseModel):
    """
    Options accepted by ``run``.

    Only ``output_schema`` and ``input`` are required; everything else
    falls back to settings.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    output_schema: Any = Field(
        ..., description="pydantic model class, JSON Schema dict or schema adapter"
    )
    input: Any = Field(..., description="Input data to process")
    context: Optional[str] = Field(default=None, description="Background the model should know")
    lens: Optional[str] = Field(default=None, description="Perspective the model should take")
    session_id: Optional[str] = Field(
        default=None, description="Store session id or provider-native session id"
    )
    retries: Optional[int] = Field(default=None, description="Retries after the first attempt")
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    example_output: Any = Field(default=None, description="Example value shown to the model")
    provider_options: dict[str, Any] = Field(
        default_factory=dict, description="Adapter-specific generation options"
    )
    enhancement: Any = Field(
        default=None, description="Round count, an EnhancementConfig, or a dict of its fields"
    )
    success_message: Optional[str] = Field(
        default=None, description="Sent into the session after each validated attempt"
    )


def _check_numbers(options: RunOptions, settings: Settings) -> list[str]:
    errors = []
    if options.retries is not None:
        if options.retries < 0:
            errors.append(
                "Options configuration error: retries must be non-negative. "
                "Use 0 for no retries, or a positive number like 3."
            )
        elif options.retries > settings.MAX_RETRIES_LIMIT:
            errors.append(
                f"Options configuration error: retries must not exceed {settings.MAX_RETRIES_LIMIT}. "
                "Large retry counts waste tokens; use 3-5 for most workloads."
            )
    if options.temperature is not None and not 0.0 <= options.temperature <= 2.0:
        errors.append(
            "Options configuration error: temperature must be between 0 and 2. "
            "Example: temperature=0.4"
        )
    if options.max_tokens is not None and options.max_tokens < 1:
        errors.append(
            "Options configuration error: max_tokens must be a positive integer. "
            "Example: max_tokens=1000"
        )
    if options.session_id is not None and not options.session_id.strip():
        errors.append(
            "Options configuration error: session_id must not be empty. "
            'Omit it to run without a session, or pass an id like "analysis-session-1".'
        )
    return errors


_STRATEGIES = [strategy.value for strategy in EnhancementStrategy]


def _check_enhancement(value: Any) -> tuple[Optional[EnhancementConfig], list[str]]:
    """
    Normalize the ``enhancement`` option.

    A bare integer means that many rounds of the default strategy.
    """
    if value is None:
        return None, []
    if isinstance(value, bool) or not isinstance(value, (int, dict, EnhancementConfig)):
        return None, [
            "Options configuration error: enhancement must be a round count or an enhancement "
            'configuration. Example: enhancement=2 or enhancement={"rounds": 2, "strategy": "expand-detail"}'
        ]

    if isinstance(value, int):
        fields: dict[str, Any] = {"rounds": value}
    elif isinstance(value, EnhancementConfig):
        fields = value.model_dump()
    else:
        fields = dict(value)
    strategy = fields.get("strategy", EnhancementStrategy.EXPAND_ARRAY.value)
    if isinstance(strategy, EnhancementStrategy):
        strategy = strategy.value
        fields["strategy"] = strategy

    errors = []
    rounds = fields.get("rounds", 0)
    if not isinstance(rounds, int) or isinstance(rounds, bool) or rounds < 0:
        errors.append(
            "Options configuration error: enhancement rounds must be non-negative. "
            "Use 0 to disable enhancement, or a small number like 2."
        )
    elif rounds > MAX_ENHANCEMENT_ROUNDS:
        errors.append(
            f"Options configuration error: enhancement rounds should not exceed {MAX_ENHANCEMENT_ROUNDS}. "
            "Each round is a full model call; 1-3 rounds are usually enough."
        )
    if strategy not in _STRATEGIES:
        errors.append(
            f"Options configuration error: enhancement.strategy must be one of {', '.join(_STRATEGIES)}. "
            f'Got "{strategy}".'
        )
    elif strategy == EnhancementStrategy.CUSTOM.value and fields.get("custom_prompt") is None:
        errors.append(
            'Options configuration error: enhancement.custom_prompt is required when strategy is "custom". '
            "Example: custom_prompt=lambda current, round: 'Add more entries.'"
        )
    min_improvement = fields.get("min_improvement", DEFAULT_MIN_IMPROVEMENT)
    if isinstance(min_improvement, bool) or not isinstance(min_improvement, (int, float)) or not (
        0.0 <= min_improvement <= 1.0
    ):
        errors.append(
            "Options configuration error: enhancement.min_improvement must be between 0 and 1. "
            "Example: min_improvement=0.2"
        )
    for name in ("custom_prompt", "evaluate_improvement"):
        if fields.get(name) is not None and not callable(fields[name]):
            errors.append(f"Options configuration error: enhancement.{name} must be callable.")
    unknown = sorted(set(fields) - set(EnhancementConfig.model_fields))
    if unknown:
        errors.append(
            f"Options configuration error: unknown enhancement fields: {', '.join(unknown)}. "
            f"Allowed fields: {', '.join(EnhancementConfig.model_fields)}."
        )

    if errors:
        return None, errors
    return EnhancementConfig(**fields), []


def process_configuration(options: RunOptions, settings: Settings) -> RunConfiguration:
    """
    Validate options and apply defaults.

    Args:
        options: Caller options
        settings: Source of defaults and limits

    Returns:
        RunConfiguration ready for execution

    Raises:
        ConfigurationError: If any option is invalid or the example output
            does not satisfy the schema
    """
    errors = []
    schema = None
    try:
        schema = as_schema(options.output_schema)
    except TypeError as e:
        errors.append(
            "Options configuration error: output_schema must be a pydantic model class, "
            f"a JSON Schema dict or a schema adapter ({e})."
        )
    except Exception as e:
        errors.append(f"Options configuration error: output_schema is not a valid schema: {e}")

    if options.input is None:
        errors.append(
            "Options configuration error: input is required. "
            "Please provide input data to be processed by the model."
        )
    errors.extend(_check_numbers(options, settings))
    enhancement, enhancement_errors = _check_enhancement(options.enhancement)
    errors.extend(enhancement_errors)
    if options.success_message is not None and not options.success_message.strip():
        errors.append(
            "Options configuration error: success_message must not be empty. "
            'Omit it, or pass a message like "Correct, keep using this format."'
        )

    if errors:
        logger.warning("Run options rejected", errors=errors)
        raise ConfigurationError(errors)

    if options.example_output is not None:
        check = schema.validate(options.example_output)
        if not check.success:
            issues = format_validation_issues(check.issues)
            logger.warning("Example output failed validation", issues=issues)
            raise ConfigurationError(
                [
                    f"Invalid example_output provided: {'. '.join(issues)}. "
                    "The example must validate against the schema."
                ]
            )

    config = RunConfiguration(
        output_schema=schema,
        input=options.input,
        context=options.context,
        lens=options.lens,
        retries=options.retries if options.retries is not None else settings.DEFAULT_RETRIES,
        model=options.model or settings.DEFAULT_MODEL,
        temperature=options.temperature if options.temperature is not None else settings.DEFAULT_TEMPERATURE,
        max_tokens=options.max_tokens or settings.DEFAULT_MAX_TOKENS,
        provider_options=dict(options.provider_options),
        example_output=options.example_output,
        session_id=options.session_id,
        enhancement=enhancement,
        success_message=options.success_message,
    )

    logger.info(
        "Run configuration processed",
        schema=repr(schema),
        retries=config.retries,
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        has_context=bool(config.context),
        has_lens=bool(config.lens),
        has_example_output=config.example_output is not None,
        enhancement_rounds=enhancement.rounds if enhancement else 0,
        has_success_message=bool(config.success_message),
    )
    return config
