from __future__ import annotations

from typing import Optional


class DashboardError(Exception):
    """Base class; ``status_code`` is the HTTP status a route answers with."""

    status_code: int = 500


class NotConfiguredError(DashboardError):
    """A required API key, id or address is missing from the settings."""


class NotFoundError(DashboardError):
    status_code = 404


class BadRequestError(DashboardError):
    status_code = 400


class UpstreamError(DashboardError):
    """An upstream API call failed.

    ``status`` is the final HTTP status (None for network errors and timeouts)
    and ``body`` the leading part of the response text.
    """

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class UpstreamAuthError(UpstreamError):
    """Upstream answered 401 or 403."""


class SpotifyAuthRequired(DashboardError):
    status_code = 401
