"""Exception types raised inside tools and provider clients.

Tools never let these escape; they are turned into error envelopes at the
tool boundary (and again by the registry as a safety net).
"""

from typing import Optional


class AssetForgeError(Exception):
    """Base class for all asset-forge errors."""


class ToolInputError(AssetForgeError, ValueError):
    """Caller-supplied arguments are missing, malformed or out of range."""


class ConfigurationError(AssetForgeError):
    """A required setting (API key, endpoint) is not configured."""


class MeteringError(AssetForgeError):
    """Usage credits could not be consumed for an identified caller."""


class ProviderError(AssetForgeError):
    """A third-party generation provider rejected or failed a request."""

    def __init__(self, message: str, endpoint: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class AssetUrlNotFoundError(ProviderError):
    """No asset URL could be extracted from a provider response."""


class StorageUploadError(AssetForgeError):
    """Re-upload of an artifact to owned storage failed."""


class TranscodeError(AssetForgeError):
    """Audio transcoding failed."""


class OperationAborted(AssetForgeError):
    """The caller cancelled a long-running wait."""

    def __init__(self, message: str = "Operation was aborted"):
        super().__init__(message)


class RegistryFrozenError(AssetForgeError):
    """A tool was registered after the server started accepting calls."""


class PromptNotFoundError(AssetForgeError, KeyError):
    """No prompt is registered under the requested name."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class AuthenticationError(AssetForgeError):
    """The caller's bearer token is missing or was rejected."""
