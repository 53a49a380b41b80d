"""
LLM Extraction Layer.

Turns free-form model output into values that satisfy a caller-supplied
schema:
- Escalating prompts (Jinja2 templates) and validation feedback
- Two-stage validation (JSON parse, schema) with structured issues
- Bounded retry loop with recovery advice
- Session coordination over memory, file or Redis session stores
- Enhancement rounds, success feedback and session preloading

Architecture: PipelineOrchestrator -> SessionCoordinator -> ExecutionEngine
-> provider adapter (Ollama via httpx) -> ValidationPipeline
"""

__version__ = "0.1.0"

from extraction_layer.llm import BaseProvider, OllamaProvider
from extraction_layer.logging_config import configure_logging
from extraction_layer.models import PipelineResult, ProviderError, ValidationError
from extraction_layer.pipeline import (
    ConfigurationError,
    InitSessionOptions,
    PipelineOrchestrator,
    PreloadOptions,
    RunOptions,
    init_session,
    preload,
    run,
)
from extraction_layer.validation import JSONSchema, PydanticSchema

__all__ = [
    "__version__",
    "run",
    "RunOptions",
    "preload",
    "PreloadOptions",
    "init_session",
    "InitSessionOptions",
    "PipelineOrchestrator",
    "PipelineResult",
    "ConfigurationError",
    "ValidationError",
    "ProviderError",
    "BaseProvider",
    "OllamaProvider",
    "configure_logging",
    "PydanticSchema",
    "JSONSchema",
]
