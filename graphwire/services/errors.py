"""
Service layer exceptions.

Every failed call surfaces as an ApiError subclass carrying its ErrorKind,
so callers can either catch a specific class or branch on ``error.kind``.
"""

from typing import Any

from graphwire.services.classifier import ErrorKind, describe


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class DescriptorError(ServiceError, ValueError):
    """A request could not be built (raised before anything is sent)."""

    pass


class ApiError(ServiceError):
    """A classified failure of one logical call."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        method: str = "",
        path: str = "",
        correlation_id: str = "",
        attempts: int = 1,
        retries_exhausted: bool = False,
        retry_after: int | None = None,
        response_data: Any = None,
        service_id: str | None = None,
    ):
        self.message = message
        self.http_status = http_status
        self.method = method
        self.path = path
        self.correlation_id = correlation_id
        self.attempts = attempts
        self.retries_exhausted = retries_exhausted
        self.retry_after = retry_after
        self.response_data = response_data

        text = f"{message} ({method} {path}, Request ID: {correlation_id})"
        if retries_exhausted:
            text += f" after {attempts} attempts"
        super().__init__(text, service_id=service_id)

    @property
    def not_found(self) -> bool:
        """True for the resource-not-found variant of InvalidRequest."""
        return self.kind is ErrorKind.INVALID_REQUEST and self.http_status == 404


class InvalidRequestError(ApiError):
    """Request was structurally wrong (400) or targeted a missing resource (404)."""

    kind = ErrorKind.INVALID_REQUEST


class AuthenticationFailedError(ApiError):
    """Credential was missing, expired or rejected."""

    kind = ErrorKind.AUTHENTICATION_FAILED


class AccessDeniedError(ApiError):
    """Credential lacks permission for the resource."""

    kind = ErrorKind.ACCESS_DENIED


class RateLimitedError(ApiError):
    """Server throttled the caller."""

    kind = ErrorKind.RATE_LIMITED


class ServerError(ApiError):
    """Transient server or transport failure."""

    kind = ErrorKind.SERVER_ERROR


class UnknownApiError(ApiError):
    """Anything outside the known status mapping, or a protocol violation."""

    kind = ErrorKind.UNKNOWN


class BatchProtocolError(UnknownApiError):
    """Batch response was malformed or did not account for every request id."""

    def __init__(
        self, missing_ids: list[str], detail: str | None = None, **kwargs: Any
    ):
        self.missing_ids = missing_ids
        super().__init__(
            detail
            or f"Batch response missing results for ids: {', '.join(missing_ids)}",
            **kwargs,
        )


ERROR_TYPES: dict[ErrorKind, type[ApiError]] = {
    ErrorKind.INVALID_REQUEST: InvalidRequestError,
    ErrorKind.AUTHENTICATION_FAILED: AuthenticationFailedError,
    ErrorKind.ACCESS_DENIED: AccessDeniedError,
    ErrorKind.RATE_LIMITED: RateLimitedError,
    ErrorKind.SERVER_ERROR: ServerError,
    ErrorKind.UNKNOWN: UnknownApiError,
}


def error_for(
    kind: ErrorKind,
    raw_message: str,
    http_status: int | None = None,
    **kwargs: Any,
) -> ApiError:
    """Build the ApiError subclass matching ``kind``."""
    return ERROR_TYPES[kind](
        describe(kind, http_status, raw_message),
        http_status=http_status,
        **kwargs,
    )
