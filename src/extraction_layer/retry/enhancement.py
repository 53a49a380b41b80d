"""
Enhancement rounds: asking the model to improve a result that already validates.

Each strategy has a prompt that nudges the model in one direction (more
items, more detail, more variety) and a score in [0, 1] comparing the
enhanced result with the current best. Both can be overridden with the
callables on ``EnhancementConfig``.
"""

import json
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import BaseModel

from extraction_layer.models.enums import EnhancementStrategy
from extraction_layer.models.run_models import EnhancementConfig, RunConfiguration

logger = structlog.get_logger(__name__)

ARRAY_ENCOURAGEMENTS = (
    "Great start! Could you expand this with more comprehensive examples?",
    "Excellent foundation! Let's add more diverse items to make this even better.",
    "Good work! Can you provide additional entries to create a more complete set?",
)
DETAIL_ENCOURAGEMENTS = (
    "Good response! Let's enhance it with more detailed information.",
    "Nice work! Could you elaborate further with additional depth?",
    "Great foundation! Please add more comprehensive details.",
)
VARIETY_ENCOURAGEMENTS = (
    "Good variety! Let's add more diverse perspectives.",
    "Nice range! Could you include additional unique variations?",
    "Great diversity! Please add more distinct examples.",
)


@dataclass
class ResultShape:
    """Size and diversity figures of a JSON-like value."""

    array_count: int = 0
    total_items: int = 0
    total_string_length: int = 0
    unique_values: int = 0
    depth: int = 0
    has_arrays: bool = False
    has_strings: bool = False
    has_objects: bool = False


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


def analyze_result(result: Any) -> ResultShape:
    """
    Walk a result and measure it.

    Array elements and object values both count towards ``total_items``.
    Array elements (serialized) and strings count towards ``unique_values``.
    """
    shape = ResultShape()
    seen: set[str] = set()

    def walk(node: Any, depth: int) -> None:
        shape.depth = max(shape.depth, depth)
        if isinstance(node, list):
            shape.has_arrays = True
            shape.array_count += 1
            shape.total_items += len(node)
            for item in node:
                seen.add(json.dumps(item, sort_keys=True, default=str))
                walk(item, depth + 1)
        elif isinstance(node, dict):
            shape.has_objects = True
            shape.total_items += len(node)
            for item in node.values():
                walk(item, depth + 1)
        elif isinstance(node, str):
            shape.has_strings = True
            shape.total_string_length += len(node)
            seen.add(node)

    walk(_plain(result), 0)
    shape.unique_values = len(seen)
    return shape


def _encouragement(options: tuple[str, ...], round_number: int) -> str:
    return options[min(max(round_number, 1), len(options)) - 1]


def _array_prompt(shape: ResultShape, round_number: int) -> str:
    encouragement = _encouragement(ARRAY_ENCOURAGEMENTS, round_number)
    if not shape.has_arrays:
        return (
            f"{encouragement}\n\n"
            "Could you expand your response with more items or examples? "
            "Aim for a comprehensive collection that thoroughly covers the topic."
        )
    suggested = max(5, shape.total_items // 2)
    return (
        f"{encouragement}\n\n"
        f"You provided {shape.total_items} items, which is good. Could you add approximately "
        f"{suggested} more items to create a more comprehensive collection?\n\n"
        "Focus on:\n"
        "- Adding diverse and unique examples\n"
        "- Maintaining the same quality and structure\n"
        "- Avoiding repetition or redundancy\n\n"
        "Please provide the complete enhanced result including both the original items and the new additions."
    )


def _detail_prompt(shape: ResultShape, round_number: int) -> str:
    encouragement = _encouragement(DETAIL_ENCOURAGEMENTS, round_number)
    average_length = shape.total_string_length / max(1, shape.total_items)
    assessment = "The current descriptions are quite brief." if average_length < 50 else "Good level of detail so far."
    return (
        f"{encouragement}\n\n"
        f"{assessment} Please enhance the result by:\n\n"
        "- Adding more descriptive information to each item\n"
        "- Including relevant context and explanations\n"
        "- Providing specific examples where applicable\n"
        "- Expanding on key points with additional insights\n\n"
        "Maintain the same structure while enriching the content quality."
    )


def _variety_prompt(shape: ResultShape, round_number: int) -> str:
    encouragement = _encouragement(VARIETY_ENCOURAGEMENTS, round_number)
    uniqueness = shape.unique_values / max(1, shape.total_items)
    assessment = "Some items appear similar." if uniqueness < 0.8 else "Good variety so far."
    return (
        f"{encouragement}\n\n"
        f"{assessment} Please enhance the result by:\n\n"
        "- Adding more unique and distinctive items\n"
        "- Exploring different angles or perspectives\n"
        "- Avoiding repetition or similar patterns\n"
        "- Including edge cases or less common examples\n\n"
        "Focus on maximizing diversity while maintaining quality and relevance."
    )


_PROMPTS = {
    EnhancementStrategy.EXPAND_ARRAY.value: _array_prompt,
    EnhancementStrategy.EXPAND_DETAIL.value: _detail_prompt,
    EnhancementStrategy.EXPAND_VARIETY.value: _variety_prompt,
}


def build_enhancement_prompt(config: EnhancementConfig, current: Any, round_number: int) -> str:
    """
    Instruction asking the model to improve ``current``.

    Raises:
        ValueError: For the custom strategy without a ``custom_prompt``
    """
    if config.custom_prompt is not None:
        return config.custom_prompt(current, round_number)
    if config.strategy == EnhancementStrategy.CUSTOM.value:
        raise ValueError("The custom enhancement strategy requires a custom_prompt")
    builder = _PROMPTS.get(config.strategy, _array_prompt)
    return builder(analyze_result(current), round_number)


def _clamp(score: float) -> float:
    return min(1.0, max(0.0, score))


def _array_score(baseline: ResultShape, enhanced: ResultShape) -> float:
    if baseline.total_items == 0:
        return 1.0 if enhanced.total_items > 0 else 0.0
    growth = (enhanced.total_items - baseline.total_items) / baseline.total_items
    diversity = enhanced.unique_values / max(1, enhanced.total_items)
    return _clamp(growth * 0.7 + diversity * 0.3)


def _detail_score(baseline: ResultShape, enhanced: ResultShape) -> float:
    baseline_average = baseline.total_string_length / max(1, baseline.total_items)
    enhanced_average = enhanced.total_string_length / max(1, enhanced.total_items)
    if baseline_average == 0:
        return 1.0 if enhanced_average > 0 else 0.0
    growth = (enhanced_average - baseline_average) / baseline_average
    deeper = 0.2 if enhanced.depth > baseline.depth else 0.0
    return _clamp(growth * 0.8 + deeper)


def _variety_score(baseline: ResultShape, enhanced: ResultShape) -> float:
    if baseline.unique_values == 0:
        return 1.0 if enhanced.unique_values > 0 else 0.0
    growth = (enhanced.unique_values - baseline.unique_values) / baseline.unique_values
    diversity = enhanced.unique_values / max(1, enhanced.total_items)
    return _clamp(growth * 0.6 + diversity * 0.4)


_SCORES = {
    EnhancementStrategy.EXPAND_ARRAY.value: _array_score,
    EnhancementStrategy.EXPAND_DETAIL.value: _detail_score,
    EnhancementStrategy.EXPAND_VARIETY.value: _variety_score,
}


def evaluate_improvement(config: EnhancementConfig, baseline: Any, enhanced: Any) -> float:
    """
    Score how much ``enhanced`` improves on ``baseline``.

    Returns:
        Score in [0, 1]; a custom evaluator's score is returned as is
    """
    if config.evaluate_improvement is not None:
        return config.evaluate_improvement(baseline, enhanced)
    scorer = _SCORES.get(config.strategy, _array_score)
    score = scorer(analyze_result(baseline), analyze_result(enhanced))
    logger.debug(
        "Improvement evaluated",
        strategy=config.strategy,
        score=round(score, 3),
        meets_threshold=score >= config.min_improvement,
    )
    return score


def combine_enhancement_prompt(config: RunConfiguration, instruction: str, current: Any) -> str:
    """Full prompt for one enhancement round: context, schema, current result, request, lens."""
    sections = []
    if config.context:
        sections.append(f"[CONTEXT]\n{config.context}")
    sections.append(
        "[SCHEMA]\nThe output must strictly conform to the following structure:\n"
        f"{config.output_schema.describe()}"
    )
    sections.append(
        "[CURRENT RESULT]\nHere is the current valid result:\n"
        f"{json.dumps(_plain(current), indent=2, ensure_ascii=False, default=str)}"
    )
    sections.append(f"[ENHANCEMENT REQUEST]\n{instruction}")
    if config.lens:
        sections.append(f"[LENS]\n{config.lens}")
    return "\n\n".join(sections)
