"""
Exceptions raised by provider adapters.

Adapters fail by raising; the retry engine catches at the ``send_prompt``
boundary and converts the exception into a ``ProviderError`` value. Each
class carries the finer-grained ``provider_code`` the engine attaches to
that value.
"""

from extraction_layer.models.enums import ProviderErrorCode


class LLMClientError(Exception):
    """
    Base exception for all provider adapter errors.

    Catching this class catches any adapter-specific failure.
    """
    provider_code: ProviderErrorCode = ProviderErrorCode.PROVIDER_CALL_FAILED

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class LLMConnectionError(LLMClientError):
    """Network-level failure reaching the inference server (DNS, refused, reset)."""
    provider_code = ProviderErrorCode.PROVIDER_UNAVAILABLE


class LLMTimeoutError(LLMConnectionError):
    """The server did not answer within the adapter's timeout."""


class LLMGenerationError(LLMClientError):
    """
    The server answered with an error during generation.

    5xx responses are reported as ``provider_unavailable``; other statuses
    keep the generic ``provider_call_failed`` code.
    """

    def __init__(self, message: str, details: dict | None = None, transient: bool = False):
        super().__init__(message, details)
        if transient:
            self.provider_code = ProviderErrorCode.PROVIDER_UNAVAILABLE


class LLMModelNotAvailableError(LLMGenerationError):
    """The requested model is not installed on the server."""
    provider_code = ProviderErrorCode.INVALID_CONFIGURATION


class LLMRateLimitError(LLMClientError):
    """The server rejected the request because of rate limiting (HTTP 429)."""
    provider_code = ProviderErrorCode.RATE_LIMITED


class LLMAuthenticationError(LLMClientError):
    """The server rejected the credentials (HTTP 401/403)."""
    provider_code = ProviderErrorCode.AUTHENTICATION_FAILED


class LLMSessionError(LLMClientError):
    """A provider-native session could not be created or was not found."""
    provider_code = ProviderErrorCode.SESSION_CREATION_FAILED
