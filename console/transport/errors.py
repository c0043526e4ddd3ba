"""
Error taxonomy for the console core.

The Transport classifies every failed call into exactly one of these types
before it reaches a page. Pages branch on the type to decide how to render:

- AuthError:        rejected login (shown inline on the login form)
- Unauthorized:     session invalid outside login (forced logout + redirect)
- Forbidden:        authenticated but not allowed (dismissible message)
- NetworkError:     connection failure, safe to retry
- Timeout:          call exceeded the configured timeout, safe to retry
- ValidationError:  server rejected the payload (rendered next to the form)
- ApiError:         any other non-2xx answer (404, 5xx, ...)

Security: messages carry server-provided text only. Never attach tokens or
request headers to an error.
"""
from __future__ import annotations

from typing import Any, Optional


class ConsoleError(Exception):
    """Base class for all classified console failures."""

    retryable: bool = False
    default_message = "request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
        data: Any = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        self.status = status
        self.code = code or self.__class__.__name__.lower()
        self.data = data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status={self.status!r})"


class AuthError(ConsoleError):
    default_message = "invalid username or password"


class Unauthorized(ConsoleError):
    default_message = "session expired, please log in again"


class Forbidden(ConsoleError):
    default_message = "access denied"


class NetworkError(ConsoleError):
    retryable = True
    default_message = "network unavailable"


class Timeout(NetworkError):
    default_message = "request timed out"


class ValidationError(ConsoleError):
    default_message = "request rejected by server"


class ApiError(ConsoleError):
    pass


class PageOutOfRange(ConsoleError):
    """Raised by a pagination strategy when the requested page no longer exists.

    The list controller catches it and re-issues the query with a clamped
    page index; it never reaches a page component.
    """

    default_message = "page index out of range"

    def __init__(self, total_pages: int, *, requested: int) -> None:
        super().__init__(code="page_out_of_range")
        self.total_pages = total_pages
        self.requested = requested


__all__ = [
    "ConsoleError",
    "AuthError",
    "Unauthorized",
    "Forbidden",
    "NetworkError",
    "Timeout",
    "ValidationError",
    "ApiError",
    "PageOutOfRange",
]
