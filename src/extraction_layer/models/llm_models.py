"""
Provider-facing data models.

These models describe what flows across the provider capability boundary:
the response of a single prompt, its token usage, and the health of a
provider-native session.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class ProviderResponse(BaseModel):
    """
    Raw result of one ``send_prompt`` call.

    ``content`` is the unparsed text produced by the model; parsing and
    schema validation happen in the validation layer.
    """
    model_config = ConfigDict(frozen=True)

    content: str = Field(..., description="Generated text (expected to be JSON)")
    token_usage: Optional[TokenUsage] = Field(default=None, description="Token accounting, if reported")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider-specific metadata (for debugging)"
    )


class SessionValidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    response_time_ms: Optional[int] = None
    error: Optional[str] = None
