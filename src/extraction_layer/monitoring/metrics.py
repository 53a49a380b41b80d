"""Custom Prometheus metrics for the LLM Extraction Layer.

Metrics are registered on the default registry; the embedding application
decides how to expose them. Alert rules should be configured for:
- validation_failures_total (model drifting away from the schema)
- provider_errors_total (provider instability)
- runs_total{outcome="failure"} (retry budgets being exhausted)
"""

from prometheus_client import Counter, Histogram

# === Validation Metrics ===

validation_failures_total = Counter(
    "extraction_validation_failures_total",
    "Total validation failures by stage and error type",
    ["stage", "error_type"],
)
"""
Validation failures counter by stage and error type.

Labels:
- stage: stage1 (JSON parse), stage2 (schema)
- error_type: empty_response, invalid_json, schema_mismatch

Alert thresholds:
- WARN: rate > 10% of attempts
- CRITICAL: rate > 30% of attempts
"""

# === Attempt & Retry Metrics ===

attempts_total = Counter(
    "extraction_attempts_total",
    "Total extraction attempts by outcome",
    ["outcome"],
)
"""
Attempt counter.

Labels:
- outcome: success, validation (output rejected), provider (send_prompt raised)
"""

retries_total = Counter(
    "extraction_retries_total",
    "Total retry attempts by retry strategy and outcome",
    ["strategy", "success"],
)
"""
Retry counter, incremented once per run that needed more than one attempt.

Labels:
- strategy: feedback (the previous error was fed back into the prompt)
- success: true (a retry produced a valid value), false (budget exhausted)
"""

runs_total = Counter(
    "extraction_runs_total",
    "Total pipeline runs by outcome",
    ["outcome"],
)
"""
Pipeline run counter.

Labels:
- outcome: success, failure
"""

enhancement_rounds_total = Counter(
    "extraction_enhancement_rounds_total",
    "Enhancement rounds by outcome",
    ["outcome"],
)
"""
Enhancement round counter.

Labels:
- outcome: accepted (replaced the current best), rejected (scored below
  min_improvement), invalid (failed validation), error (provider or prompt failure)
"""

# === Provider Metrics ===

provider_errors_total = Counter(
    "extraction_provider_errors_total",
    "Total provider errors by provider and error code",
    ["provider", "code"],
)

llm_latency_seconds = Histogram(
    "extraction_llm_latency_seconds",
    "Provider send_prompt latency in seconds",
    ["provider", "success"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)
"""
Provider latency histogram.

Buckets optimized for LLM inference (0.5s to 120s).

Alert thresholds:
- WARN: p95 > 30s
- CRITICAL: p95 > 60s
"""

llm_tokens_total = Counter(
    "extraction_llm_tokens_total",
    "Total tokens consumed by provider and type",
    ["provider", "token_type"],
)
"""
Token consumption counter.

Labels:
- token_type: input, output
"""

# === Session Metrics ===

session_operations_total = Counter(
    "extraction_session_operations_total",
    "Session store and coordinator operations by outcome",
    ["operation", "outcome"],
)
"""
Session operation counter.

Labels:
- operation: create, cleanup (store), provider_create (coordinator),
  success_feedback (engine), preload, init (preload module)
- outcome: success, error, unsupported
"""
