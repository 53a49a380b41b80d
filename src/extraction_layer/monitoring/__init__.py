"""Monitoring and metrics instrumentation for the LLM Extraction Layer.

Exports custom Prometheus metrics for operational monitoring and alerting.
"""

from extraction_layer.monitoring.metrics import (
    attempts_total,
    llm_latency_seconds,
    llm_tokens_total,
    provider_errors_total,
    retries_total,
    runs_total,
    session_operations_total,
    validation_failures_total,
)

__all__ = [
    "validation_failures_total",
    "attempts_total",
    "retries_total",
    "runs_total",
    "provider_errors_total",
    "llm_latency_seconds",
    "llm_tokens_total",
    "session_operations_total",
]
