"""Exceptions raised by the Bluesky widget.

Every error the request pipeline can produce subclasses :class:`WidgetError`
so the HTTP layer can map it to a status code in one place.
"""

from __future__ import annotations


class WidgetError(Exception):
    """Base class for all widget errors."""

    status_code: int = 500


class ConfigError(WidgetError):
    """Required environment configuration is missing or invalid."""


class AuthError(WidgetError):
    """The upstream instance rejected our credentials or could not be reached."""

    status_code = 503


class ParseError(WidgetError):
    """A query parameter could not be parsed.

    Args:
        parameter: Name of the offending query parameter.
        message: Human readable reason.
    """

    status_code = 400

    def __init__(self, parameter: str, message: str) -> None:
        self.parameter = parameter
        super().__init__(f"{parameter}: {message}")


class UpstreamError(WidgetError):
    """The search API answered with a non-2xx status or an unreadable body."""

    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        self.upstream_status = upstream_status
        super().__init__(message)


class AuthExpiredError(UpstreamError):
    """The session token was rejected mid-operation."""
