"""Custom exceptions for the discovery domain."""

from __future__ import annotations


class DiscoveryError(Exception):
    """Base exception for this project."""


class ConfigError(DiscoveryError):
    """Raised when runtime configuration or run input is invalid."""


class FetchError(DiscoveryError):
    """Raised when fetching a page fails.

    ``kind`` is one of ``timeout``, ``connection_refused``, ``http_status``,
    ``too_large``, ``redirect_loop`` or ``unsupported``.
    """

    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    HTTP_STATUS = "http_status"
    TOO_LARGE = "too_large"
    REDIRECT_LOOP = "redirect_loop"
    UNSUPPORTED = "unsupported"

    def __init__(
        self, kind: str, url: str, *, status_code: int | None = None, detail: str = ""
    ) -> None:
        self.kind = kind
        self.url = url
        self.status_code = status_code
        self.detail = detail
        message = f"{kind} fetching {url}"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)

    @property
    def transient(self) -> bool:
        """Return True when a later attempt could plausibly succeed."""
        if self.kind in {self.TIMEOUT, self.CONNECTION_REFUSED}:
            return True
        if self.kind == self.HTTP_STATUS:
            code = self.status_code or 0
            return code == 429 or 500 <= code < 600
        return False


class ExtractionError(DiscoveryError):
    """Raised when page content cannot be parsed for candidates."""


class ValidationError(DiscoveryError):
    """Raised inside a network validation tier; downgraded to an Unknown verdict."""
