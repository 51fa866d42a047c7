"""Correction provider exceptions."""


class ProviderError(Exception):
    """Base exception for correction provider failures.

    Provider failures are transient: the caller keeps its buffer and may
    retry later.
    """

    code = "PROVIDER_ERROR"
    retryable = True


class ProviderUnavailableError(ProviderError):
    """Raised when the provider cannot be reached or is not configured."""

    code = "PROVIDER_UNAVAILABLE"


class ProviderRateLimitedError(ProviderError):
    """Raised when the provider rejects the call with HTTP 429."""

    code = "PROVIDER_RATE_LIMITED"

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class ProviderResponseMalformedError(ProviderError):
    """Raised when the reply holds no parseable structured result."""

    code = "PROVIDER_MALFORMED_RESPONSE"
