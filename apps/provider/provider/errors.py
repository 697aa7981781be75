"""Error taxonomy for the GitHub provider.

Every error raised by this package derives from ProviderError so callers
can catch the whole family at one boundary. Network failures raised by
httpx and asyncio.CancelledError are not wrapped; they reach the caller
as-is.
"""

from typing import Optional


class ProviderError(Exception):
    """Base class for provider failures."""


class KeyParseError(ProviderError):
    """The App private key is not a parseable RSA PEM."""


class SigningError(ProviderError):
    """The App JWT could not be signed."""


class TransportError(ProviderError):
    """A remote call answered with an HTTP status >= 300.

    Carries the URL and status code for upstream logging.
    """

    def __init__(self, url: str, status_code: int, message: Optional[str] = None):
        self.url = url
        self.status_code = status_code
        detail = f": {message}" if message else ""
        super().__init__(f"Non-OK HTTP status {status_code} for {url}{detail}")


class ProtocolError(ProviderError):
    """A remote response lacks a field we cannot proceed without."""


class CacheCorruptionError(ProviderError):
    """A value that is not a check-run ID was offered to the check-run cache."""


class NotAuthenticatedError(ProviderError):
    """No client or credentials are configured for GitHub."""
