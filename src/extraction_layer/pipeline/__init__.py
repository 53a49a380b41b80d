"""
Extraction pipeline.

Components:
- RunOptions / process_configuration: caller options -> RunConfiguration
- PipelineOrchestrator / run: public entry point, never raises
- Result processor: PipelineResult envelopes and run statistics
- preload / init_session: load material into a session, open and prime sessions
"""

from extraction_layer.pipeline.configuration import ConfigurationError, RunOptions, process_configuration
from extraction_layer.pipeline.orchestrator import PipelineOrchestrator, run
from extraction_layer.pipeline.preload import (
    InitSessionOptions,
    InitSessionResult,
    PreloadOptions,
    PreloadResult,
    init_session,
    preload,
)
from extraction_layer.pipeline.result_processor import (
    build_execution_metadata,
    create_error_result,
    format_result_metadata,
    get_execution_stats,
    process_result,
)

__all__ = [
    "ConfigurationError",
    "RunOptions",
    "process_configuration",
    "PipelineOrchestrator",
    "run",
    "create_error_result",
    "format_result_metadata",
    "get_execution_stats",
    "process_result",
    "build_execution_metadata",
    "PreloadOptions",
    "PreloadResult",
    "preload",
    "InitSessionOptions",
    "InitSessionResult",
    "init_session",
]
