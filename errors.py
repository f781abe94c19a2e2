"""
Failure kinds raised by image providers.

Every provider failure is a ``ProviderError`` subclass so the acquisition
pipeline can catch them uniformly and move on to the next provider.
"""

from typing import Optional


class ProviderError(Exception):
    """Base class for provider failures."""

    kind = "provider_error"

    def __init__(self, provider: str, message: str):
        super().__init__(f"[{provider}] {message}")
        self.provider = provider
        self.message = message


class AuthMissing(ProviderError):
    """No API key or credential is configured for the provider."""

    kind = "auth_missing"


class CredentialMalformed(ProviderError):
    """The credential blob could not be parsed, even after sanitization."""

    kind = "credential_malformed"


class RequestRejected(ProviderError):
    """Upstream answered with a non-success status, or the transport failed."""

    kind = "request_rejected"

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(provider, message)
        self.status_code = status_code


class MalformedResponse(ProviderError):
    """Upstream answered successfully but without usable image data."""

    kind = "malformed_response"


class ProviderTimeout(ProviderError):
    """The provider did not finish within its deadline."""

    kind = "timeout"
