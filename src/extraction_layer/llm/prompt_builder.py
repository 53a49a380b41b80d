"""
Prompt builder for extraction requests.

Responsible for:
- Loading and rendering Jinja2 templates (system + user prompts)
- Escalating instruction intensity with the attempt number
- Including context, perspective (lens) and an example output
- Merging feedback from a failed attempt into the next prompt
- Preload prompts that seed a session with material
"""

import dataclasses
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import structlog
from jinja2 import Environment, FileSystemLoader
from pydantic import BaseModel

from extraction_layer.models.run_models import RunConfiguration

logger = structlog.get_logger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).parent / "templates"

DEFAULT_EXAMPLES = (
    'Example: {"field": "value", "number": 42, "flag": true}',
    'Example: {"items": [{"name": "item1"}, {"name": "item2"}]}',
)

JSON_INSTRUCTIONS = {
    1: "Output MUST be valid JSON that parses correctly",
    2: "Output MUST be valid JSON that parses correctly. No explanatory text, only the JSON response.",
    3: 'Your response must START with "{" and END with "}". No text before or after the JSON object.',
}


@dataclass(frozen=True)
class PromptParts:
    """Structured prompt, combined into a single string just before sending."""

    system_prompt: str
    user_prompt: str
    examples: list[str] = field(default_factory=list)
    error_context: Optional[str] = None
    additional_context: Optional[str] = None


def get_urgency_level(attempt: int) -> tuple[str, str]:
    """(level, emoji) used in the system prompt requirements header."""
    if attempt >= 3:
        return "CRITICAL", "🚨 "
    if attempt == 2:
        return "IMPORTANT", "⚠️ "
    return "STANDARD", ""


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


def _dump(value: Any) -> str:
    return json.dumps(_to_jsonable(value), indent=2, ensure_ascii=False, default=str)


class PromptBuilder:
    """
    Build prompts from a RunConfiguration.

    Args:
        templates_dir: Directory containing ``system_prompt.j2`` and
            ``user_prompt.j2`` (defaults to the packaged templates)
    """

    def __init__(self, templates_dir: Optional[Path] = None):
        self.templates_dir = Path(templates_dir) if templates_dir else DEFAULT_TEMPLATES_DIR

        self.jinja_env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False  # We're generating prompts, not HTML
        )

        try:
            self.system_template = self.jinja_env.get_template("system_prompt.j2")
            self.user_template = self.jinja_env.get_template("user_prompt.j2")
            self.preload_template = self.jinja_env.get_template("preload_prompt.j2")
        except Exception as e:
            logger.error("Failed to load prompt templates", error=str(e), templates_dir=str(self.templates_dir))
            raise

        logger.info("PromptBuilder initialized", templates_dir=str(self.templates_dir))

    def build_system_prompt(
        self,
        schema_description: str,
        context: Optional[str] = None,
        lens: Optional[str] = None,
        attempt: int = 1,
        example_output: Any = None,
    ) -> str:
        level, emoji = get_urgency_level(attempt)
        return self.system_template.render(
            attempt=attempt,
            urgency_level=level,
            urgency_emoji=emoji,
            json_instructions=JSON_INSTRUCTIONS[min(attempt, 3)],
            schema_description=schema_description,
            context=context,
            lens=lens,
            example_json=_dump(example_output) if example_output is not None else None,
        ).strip()

    def build_user_prompt(self, input_data: Any) -> str:
        input_text = input_data if isinstance(input_data, str) else _dump(input_data)
        return self.user_template.render(input_text=input_text).strip()

    def build_preload_prompt(
        self, input_data: Any, context: Optional[str] = None, lens: Optional[str] = None
    ) -> str:
        """Prompt that loads material into a session without asking for output."""
        input_text = input_data if isinstance(input_data, str) else _dump(input_data)
        return self.preload_template.render(input_text=input_text, context=context, lens=lens).strip()

    def build_prompt(self, config: RunConfiguration, attempt: int = 1) -> PromptParts:
        """
        Build prompt parts for one attempt.

        Args:
            config: Run configuration (schema, input, context, lens, example)
            attempt: Attempt number, drives instruction intensity

        Returns:
            PromptParts ready for ``combine_prompt_parts``
        """
        system_prompt = self.build_system_prompt(
            schema_description=config.output_schema.describe(),
            context=config.context,
            lens=config.lens,
            attempt=attempt,
            example_output=config.example_output,
        )
        user_prompt = self.build_user_prompt(config.input)

        if config.example_output is not None:
            examples = [f"EXAMPLE OUTPUT FORMAT:\n{_dump(config.example_output)}"]
        else:
            examples = list(DEFAULT_EXAMPLES)

        logger.debug(
            "Prompt built",
            attempt=attempt,
            system_prompt_length=len(system_prompt),
            user_prompt_length=len(user_prompt),
            has_context=bool(config.context),
            has_lens=bool(config.lens),
        )

        return PromptParts(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            examples=examples,
            additional_context=config.context,
        )


def combine_prompt_parts(parts: PromptParts) -> str:
    """Join prompt parts into the single string sent to the provider."""
    sections = [parts.system_prompt]
    if parts.examples:
        sections.append("\nEXAMPLES:\n" + "\n".join(parts.examples))
    if parts.error_context:
        sections.append(f"\nPREVIOUS VALIDATION ERRORS:\n{parts.error_context}")
    sections.append(f"\n{parts.user_prompt}")
    return "\n".join(sections)


def augment_prompt_with_errors(parts: PromptParts, feedback: str) -> PromptParts:
    """Return new parts carrying ``feedback`` from the previous failed attempt."""
    return dataclasses.replace(
        parts,
        error_context=feedback,
        user_prompt=(
            f"{parts.user_prompt}\n\nPREVIOUS ATTEMPT FAILED VALIDATION:\n{feedback}"
            "\n\nPlease correct these issues and provide valid JSON matching the schema."
        ),
    )
