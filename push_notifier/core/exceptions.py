"""Custom exception classes for the application.

Two families live here:

- ``AppException`` and its subclasses are raised by route handlers and
  turned into HTTP responses by ``app.exception_handlers``.
- ``NotifierError`` and its subclasses are raised by the dispatch engine,
  the channel adapters and the Signal K host adapters. Route handlers
  translate them into the matching ``AppException``.
"""

from __future__ import annotations

from typing import Any

# Fixed human-readable bodies returned when a handler supplies no detail.
STATUS_PHRASES: dict[int, str | None] = {
    200: None,
    201: None,
    400: "bad request",
    403: "forbidden",
    404: "not found",
    500: "internal server error",
    503: "service unavailable (try again later)",
}


class AppException(Exception):
    """Base application exception.

    All HTTP-facing exceptions inherit from this class.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Response body. When None the fixed phrase for
            ``status_code`` is used.
        extra: Additional context for logging only, never sent to clients.

    Example:
            raise AppException(
            status_code=503,
            detail="503: cannot save subscription",
            extra={"subscriber_id": "a@b.com"},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            status_code: HTTP status code.
            detail: Optional response body overriding the fixed phrase.
            extra: Additional context about the error.
        """
        self.status_code = status_code
        self.detail = detail
        self.extra = extra or {}
        super().__init__(detail or self.phrase_for(status_code) or str(status_code))

    @staticmethod
    def phrase_for(status_code: int) -> str | None:
        """Get the fixed phrase for an HTTP status code.

        Args:
            status_code: HTTP status code.

        Returns:
            Phrase for the status code, or None when it carries no body.
        """
        return STATUS_PHRASES.get(status_code)

    @property
    def body(self) -> str | None:
        """Response body: the explicit detail or the fixed phrase."""
        return self.detail if self.detail else self.phrase_for(self.status_code)


class BadRequestException(AppException):
    """Exception raised for malformed requests (400)."""

    def __init__(self, detail: str | None = None, extra: dict[str, Any] | None = None) -> None:
        super().__init__(status_code=400, detail=detail, extra=extra)


class ForbiddenException(AppException):
    """Exception raised when the caller may not perform the action (403)."""

    def __init__(self, detail: str | None = None, extra: dict[str, Any] | None = None) -> None:
        super().__init__(status_code=403, detail=detail, extra=extra)


class NotFoundException(AppException):
    """Exception raised when a subscriber or resource is not found (404).

    Example:
            raise NotFoundException(
            detail="404: unknown subscriber",
            extra={"subscriber_id": "abcd1234"},
        )
    """

    def __init__(self, detail: str | None = None, extra: dict[str, Any] | None = None) -> None:
        super().__init__(status_code=404, detail=detail, extra=extra)


class InternalServerException(AppException):
    """Exception raised for unexpected server-side failures (500)."""

    def __init__(self, detail: str | None = None, extra: dict[str, Any] | None = None) -> None:
        super().__init__(status_code=500, detail=detail, extra=extra)


class ServiceUnavailableException(AppException):
    """Exception raised when a backing service is temporarily unavailable (503)."""

    def __init__(self, detail: str | None = None, extra: dict[str, Any] | None = None) -> None:
        super().__init__(status_code=503, detail=detail, extra=extra)


# =============================================================================
# Domain errors
# =============================================================================


class NotifierError(Exception):
    """Base class for dispatch engine and adapter errors."""


class AuthenticationError(NotifierError):
    """Host login failed or no valid token is available.

    Fatal at startup: the engine stays loaded but inert.
    """


class ConfigurationError(NotifierError):
    """A channel or watch-list entry could not be configured.

    Recoverable: the affected channel or entry is skipped.
    """


class PathFetchError(NotifierError):
    """A remote watch-list reference could not be expanded."""


class StoreError(NotifierError):
    """A subscriber store read, write or delete failed."""


class SubscriberNotFoundError(NotifierError):
    """Zero (or more than one) subscriber record matched an id.

    Attributes:
        subscriber_id: The id that was looked up.
        matches: Number of matching records found.
    """

    def __init__(self, subscriber_id: str, matches: int = 0) -> None:
        self.subscriber_id = subscriber_id
        self.matches = matches
        super().__init__(f"expected exactly one subscriber '{subscriber_id}', found {matches}")


class ChannelUnavailableError(NotifierError):
    """The channel a subscriber is bound to is not configured."""


__all__ = [
    "STATUS_PHRASES",
    "AppException",
    "AuthenticationError",
    "BadRequestException",
    "ChannelUnavailableError",
    "ConfigurationError",
    "ForbiddenException",
    "InternalServerException",
    "NotFoundException",
    "NotifierError",
    "PathFetchError",
    "ServiceUnavailableException",
    "StoreError",
    "SubscriberNotFoundError",
]
