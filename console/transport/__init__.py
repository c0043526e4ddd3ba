"""Transport layer: HTTP client, envelope handling and error taxonomy."""

from .client import Transport
from .envelope import ApiResponse
from .errors import (
    ApiError,
    AuthError,
    ConsoleError,
    Forbidden,
    NetworkError,
    PageOutOfRange,
    Timeout,
    Unauthorized,
    ValidationError,
)

__all__ = [
    "Transport",
    "ApiResponse",
    "ApiError",
    "AuthError",
    "ConsoleError",
    "Forbidden",
    "NetworkError",
    "PageOutOfRange",
    "Timeout",
    "Unauthorized",
    "ValidationError",
]
