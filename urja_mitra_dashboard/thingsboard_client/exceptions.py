"""Exceptions for the ThingsBoard client."""

from __future__ import annotations


class TBClientError(Exception):
    """Base exception for ThingsBoard client."""


class TBConfigError(TBClientError):
    """Required connection settings are missing."""


class TBConnectionError(TBClientError):
    """Connection error."""


class TBAuthenticationError(TBClientError):
    """Authentication error.

    ``status`` and ``body`` carry the upstream login response when there was
    one; both are None when no credential source is configured.
    """

    def __init__(
        self, message: str, status: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class TBUpstreamError(TBClientError):
    """Non-success HTTP status returned by ThingsBoard."""

    def __init__(self, status: int, body: str = "", message: str | None = None) -> None:
        super().__init__(message or f"Upstream request failed: HTTP {status}")
        self.status = status
        self.body = body


class TBNotFoundError(TBUpstreamError):
    """Entity does not exist (HTTP 404)."""

    def __init__(self, body: str = "", message: str | None = None) -> None:
        super().__init__(404, body, message or "Entity not found: HTTP 404")
