"""
ErrorClassifier - Maps a transport status code onto a closed error taxonomy.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the client."""

    INVALID_REQUEST = "InvalidRequest"
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    ACCESS_DENIED = "AccessDenied"
    RATE_LIMITED = "RateLimited"
    SERVER_ERROR = "ServerError"
    UNKNOWN = "Unknown"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.RATE_LIMITED, ErrorKind.SERVER_ERROR)


# Message prefixes per kind; 404 gets its own wording under INVALID_REQUEST
MESSAGE_PREFIXES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_REQUEST: "Bad Request",
    ErrorKind.AUTHENTICATION_FAILED: "Authentication failed",
    ErrorKind.ACCESS_DENIED: "Access denied",
    ErrorKind.RATE_LIMITED: "Rate limited",
    ErrorKind.SERVER_ERROR: "Server error",
    ErrorKind.UNKNOWN: "Graph API error",
}
NOT_FOUND_PREFIX = "Resource not found"


def classify(http_status: int, raw_message: str = "") -> ErrorKind:
    """
    Classify an HTTP status code.

    Total over all integers: anything not explicitly mapped is UNKNOWN.
    A 404 is reported as INVALID_REQUEST; callers tell it apart through
    the message (see describe()).
    """
    if http_status in (400, 404):
        return ErrorKind.INVALID_REQUEST
    if http_status == 401:
        return ErrorKind.AUTHENTICATION_FAILED
    if http_status == 403:
        return ErrorKind.ACCESS_DENIED
    if http_status == 429:
        return ErrorKind.RATE_LIMITED
    if 500 <= http_status <= 599:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.UNKNOWN


def describe(kind: ErrorKind, http_status: int | None, raw_message: str) -> str:
    """Human readable message for a classified failure."""
    prefix = NOT_FOUND_PREFIX if http_status == 404 else MESSAGE_PREFIXES[kind]
    return f"{prefix}: {raw_message}" if raw_message else prefix
