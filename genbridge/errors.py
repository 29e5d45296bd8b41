"""Error types raised by the provider layer."""

from typing import Optional


class GenbridgeError(Exception):
    """Base class for all genbridge errors."""


class ConfigurationError(GenbridgeError):
    """Missing or contradictory credentials, or an unsupported auth type/provider.

    Always raised synchronously while resolving a config or constructing a
    generator, never after network activity.
    """


class ProviderError(GenbridgeError):
    """An upstream provider answered with a non-2xx status."""

    def __init__(
        self,
        provider: str,
        status_code: int,
        status_text: str = "",
        upstream_message: Optional[str] = "",
    ):
        self.provider = provider
        self.status_code = status_code
        self.status_text = status_text
        self.upstream_message = upstream_message or ""
        super().__init__(
            f"{provider} API error: {status_code} {status_text}. {self.upstream_message}"
        )
