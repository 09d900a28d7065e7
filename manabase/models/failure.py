"""
Failure classification for the card-data service.

Every error a route handler may see derives from KnownError and carries
enough information to render a FailureDetail body. Cache storage errors
are not KnownErrors: they never leave the cache layer.

Propagation rules:
- UpstreamError degrades to a stub card inside the resolver; only bulk
  snapshot downloads let it escape (and the caller logs it).
- CacheReadError / CacheWriteError are logged by Cache and swallowed.
- NotFoundError is a normal "no result" outcome of exact lookup.
- InvalidCardNameError is raised before any I/O happens.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """What went wrong, as reported to API callers."""

    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"

    # Card data not loaded yet, or Scryfall unreachable
    SERVICE_UNAVAILABLE = "service_unavailable"
    EXTERNAL_API_ERROR = "external_api_error"

    UNKNOWN = "unknown"


class FailureDetail(BaseModel):
    """JSON body returned for any KnownError."""

    kind: FailureKind = Field(..., description="Failure category")
    message: str = Field(..., description="Short explanation safe to show to a user")
    detail: str | None = Field(
        default=None,
        description="Technical context such as the upstream URL",
    )
    suggestion: str | None = Field(
        default=None,
        description="What the caller can do next",
    )


class KnownError(Exception):
    """
    An expected failure with a ready-made API response.

    Args:
        kind: Failure category
        message: User-facing message
        detail: Technical context, may be None
        suggestion: Next step for the caller, may be None
        status_code: HTTP status used when rendered by the API
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code

    def to_detail(self) -> FailureDetail:
        return FailureDetail(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class UpstreamError(KnownError):
    """
    The card-data API failed permanently for one request.

    Raised for non-retryable statuses, exhausted 429 retries, transport
    errors and timeouts.
    """

    def __init__(self, url: str, reason: str, upstream_status: int | None = None):
        self.url = url
        self.upstream_status = upstream_status
        super().__init__(
            kind=FailureKind.EXTERNAL_API_ERROR,
            message="The card database could not be reached.",
            detail=f"{reason} ({url})",
            suggestion="Try again in a few minutes.",
            status_code=502,
        )


class NotFoundError(KnownError):
    """No card matched an exact lookup."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"Card not found: {name}",
            suggestion="Check the spelling or use search for approximate matches.",
            status_code=404,
        )


class InvalidCardNameError(KnownError, ValueError):
    """A blank or otherwise unusable card name was supplied."""

    def __init__(self, name: str | None = None):
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message="Card name required",
            detail=None if name is None else repr(name),
            status_code=400,
        )


class IndexNotReadyError(KnownError):
    """The search index has not been built (no bulk snapshot available)."""

    def __init__(self) -> None:
        super().__init__(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message="Card search is not available yet.",
            detail="Bulk card data has not been loaded.",
            suggestion="Retry once the bulk data download has completed.",
            status_code=503,
        )


class CacheReadError(Exception):
    """A cache backend could not read or decode a stored entry."""


class CacheWriteError(Exception):
    """A cache backend could not persist an entry."""
