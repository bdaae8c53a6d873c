"""Exception hierarchy for the YoLink API client and collector."""

from __future__ import annotations


class YoLinkError(RuntimeError):
    """Base class for failures talking to the YoLink cloud."""


class AuthError(YoLinkError):
    """Raised when a token exchange is rejected or cannot be completed."""


class APIError(YoLinkError):
    """Raised on transport failure, bad HTTP status or a non-success API code."""


class ParseError(YoLinkError):
    """Raised when a payload field or timestamp cannot be decoded."""
