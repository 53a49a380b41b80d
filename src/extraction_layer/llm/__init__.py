"""
Provider layer: capability contract, adapters and prompt construction.

Components:
- BaseProvider / SessionFactory / SessionValidator / SuccessFeedbackSink:
  provider capabilities
- OllamaProvider: httpx-based adapter with simulated sessions
- PromptBuilder: Jinja2 prompt rendering with attempt-based escalation
- LLMClientError hierarchy raised by adapters
"""

from extraction_layer.llm.base_client import (
    BaseProvider,
    SessionFactory,
    SessionValidator,
    SuccessFeedbackSink,
    ensure_provider_contract,
)
from extraction_layer.llm.exceptions import (
    LLMAuthenticationError,
    LLMClientError,
    LLMConnectionError,
    LLMGenerationError,
    LLMModelNotAvailableError,
    LLMRateLimitError,
    LLMSessionError,
    LLMTimeoutError,
)
from extraction_layer.llm.ollama_client import OllamaProvider
from extraction_layer.llm.prompt_builder import (
    PromptBuilder,
    PromptParts,
    augment_prompt_with_errors,
    combine_prompt_parts,
)

__all__ = [
    "BaseProvider",
    "SessionFactory",
    "SessionValidator",
    "SuccessFeedbackSink",
    "ensure_provider_contract",
    "OllamaProvider",
    "PromptBuilder",
    "PromptParts",
    "augment_prompt_with_errors",
    "combine_prompt_parts",
    "LLMClientError",
    "LLMConnectionError",
    "LLMTimeoutError",
    "LLMGenerationError",
    "LLMModelNotAvailableError",
    "LLMRateLimitError",
    "LLMAuthenticationError",
    "LLMSessionError",
]
