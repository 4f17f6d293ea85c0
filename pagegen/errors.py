from __future__ import annotations

from typing import Any, Optional


class PageGenError(Exception):
    """Base class for failures on the page generation path."""


class ConfigurationError(PageGenError):
    """A required credential is missing."""


class UpstreamError(PageGenError):
    """The LLM provider answered with a non-success status or was unreachable."""

    def __init__(self, message: str, status_code: int = 0, payload: Optional[Any] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class InvalidResponseShapeError(PageGenError):
    """The completion envelope is missing required fields."""


class EmptyContentError(PageGenError):
    """The first choice carried no generated text."""


class InvalidJsonError(PageGenError):
    """JSON output was requested but the content does not parse."""


class CacheUnavailable(PageGenError):
    """Raised inside the cache layer only; never reaches the request handler."""
