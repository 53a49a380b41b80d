"""
Retry and recovery.

Components:
- ExecutionEngine: bounded prompt / validate / feedback loop
- analyze_error / classify_error: recovery advice for a failed attempt
- analyze_result / evaluate_improvement: enhancement-round prompts and scoring
"""

from extraction_layer.retry.engine import ExecutionEngine
from extraction_layer.retry.enhancement import analyze_result, build_enhancement_prompt, evaluate_improvement
from extraction_layer.retry.recovery import analyze_error, classify_error

__all__ = [
    "ExecutionEngine",
    "analyze_error",
    "classify_error",
    "analyze_result",
    "build_enhancement_prompt",
    "evaluate_improvement",
]
