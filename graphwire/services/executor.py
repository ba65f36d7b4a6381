"""
RequestExecutor - Runs one logical request through the classify/backoff loop.

Every attempt of a call shares one correlation id, sent as the
``client-request-id`` header and attached to every telemetry event.
Attempts are strictly sequential; the only suspension points are the
HTTP call itself and the backoff sleep.
"""

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from graphwire.services.backoff import BackoffController, parse_retry_after
from graphwire.services.classifier import ErrorKind, classify
from graphwire.services.credentials import CredentialProvider
from graphwire.services.descriptor import RequestDescriptor, ResponseEnvelope
from graphwire.services.errors import ApiError, error_for
from graphwire.services.telemetry import AttemptEvent, LoggingTelemetry, TelemetrySink

CORRELATION_HEADER = "client-request-id"

DEFAULT_HEADERS = {
    "User-Agent": "graphwire/0.1",
    "Content-Type": "application/json",
    "Prefer": "return=minimal",
}


@dataclass
class _Failure:
    """What we learned from one failed attempt."""

    kind: ErrorKind
    raw_message: str
    http_status: int | None = None
    retry_after: int | None = None
    response_data: Any = None


class RequestExecutor:
    """
    Executes RequestDescriptors with retry, backoff and telemetry.

    Holds no per-call state; one instance can serve concurrent calls.

    Usage:
        executor = RequestExecutor(http_client, credentials=provider, scope=scope)
        envelope = await executor.execute(RequestDescriptor("GET", "/me"))
        print(envelope.data, envelope.correlation_id)
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        credentials: CredentialProvider | None = None,
        scope: str = "",
        backoff: BackoffController | None = None,
        telemetry: TelemetrySink | None = None,
        default_headers: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], str] | None = None,
    ):
        self._http = http_client
        self._credentials = credentials
        self._scope = scope
        self._backoff = backoff or BackoffController()
        self._telemetry = telemetry or LoggingTelemetry()
        self._default_headers = dict(
            DEFAULT_HEADERS if default_headers is None else default_headers
        )
        self._timeout = timeout
        self._sleep = sleep
        self._clock = clock
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    @property
    def telemetry(self) -> TelemetrySink:
        return self._telemetry

    async def execute(self, descriptor: RequestDescriptor) -> ResponseEnvelope[Any]:
        """
        Execute a request, retrying transient failures.

        Returns:
            ResponseEnvelope with the decoded body

        Raises:
            ApiError: classified failure; ``retries_exhausted`` tells whether
                the retry budget ran out or the failure was not retryable
        """
        correlation_id = self._id_factory()
        started = self._clock()

        headers = await self._build_headers(descriptor, correlation_id)
        params = descriptor.query.to_params()

        failure: _Failure | None = None
        exhausted = False
        attempt = 0

        for attempt in range(descriptor.max_retries):
            attempt_started = self._clock()
            try:
                response = await self._send(descriptor, headers, params)
            except httpx.TransportError as e:
                # No status to classify; treat like a transient server fault
                failure = _Failure(
                    kind=ErrorKind.SERVER_ERROR,
                    raw_message=f"{type(e).__name__}: {e}",
                )
            except httpx.RequestError as e:
                # Redirect loops and malformed URLs will not heal on retry
                failure = _Failure(
                    kind=ErrorKind.UNKNOWN,
                    raw_message=f"{type(e).__name__}: {e}",
                )
            else:
                if response.is_success:
                    self._emit(
                        descriptor, correlation_id, attempt, "success",
                        attempt_started, status_code=response.status_code,
                    )
                    return ResponseEnvelope(
                        data=_decode(response),
                        correlation_id=correlation_id,
                        duration_ms=(self._clock() - started) * 1000,
                        attempts=attempt + 1,
                        status_code=response.status_code,
                    )
                failure = _failure_from_response(response)

            delay_ms = self._backoff.next_delay(
                attempt,
                failure.kind,
                failure.retry_after,
                max_retries=descriptor.max_retries,
            )
            if delay_ms is None:
                break
            if attempt + 1 >= descriptor.max_retries:
                exhausted = True
                break

            self._emit(
                descriptor, correlation_id, attempt, "retry", attempt_started,
                status_code=failure.http_status, error_kind=failure.kind,
                delay_ms=delay_ms,
            )
            await self._sleep(delay_ms / 1000)

        self._emit(
            descriptor, correlation_id, attempt, "failure", attempt_started,
            status_code=failure.http_status, error_kind=failure.kind,
        )
        raise self._to_error(
            failure, descriptor, correlation_id, attempt + 1, exhausted
        )

    async def _build_headers(
        self, descriptor: RequestDescriptor, correlation_id: str
    ) -> httpx.Headers:
        headers = httpx.Headers(self._default_headers)
        headers.update(descriptor.headers)
        headers[CORRELATION_HEADER] = correlation_id

        if self._credentials is not None and "Authorization" not in headers:
            try:
                token = await self._credentials.get_token(self._scope)
            except ApiError as e:
                raise type(e)(
                    e.message,
                    http_status=e.http_status,
                    method=descriptor.method,
                    path=descriptor.path,
                    correlation_id=correlation_id,
                ) from e
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _send(
        self,
        descriptor: RequestDescriptor,
        headers: httpx.Headers,
        params: dict[str, str],
    ) -> httpx.Response:
        body = descriptor.body
        content = None
        json_data = None
        if isinstance(body, (bytes, str)):
            content = body
        elif body is not None:
            json_data = body

        return await self._http.request(
            method=descriptor.method,
            url=descriptor.path,
            params=params or None,
            headers=headers,
            content=content,
            json=json_data,
            timeout=self._timeout,
        )

    def _emit(
        self,
        descriptor: RequestDescriptor,
        correlation_id: str,
        attempt: int,
        outcome: str,
        attempt_started: float,
        status_code: int | None = None,
        error_kind: ErrorKind | None = None,
        delay_ms: int | None = None,
    ) -> None:
        self._telemetry.record_attempt(
            AttemptEvent(
                method=descriptor.method,
                path=descriptor.path,
                correlation_id=correlation_id,
                attempt=attempt,
                outcome=outcome,
                duration_ms=(self._clock() - attempt_started) * 1000,
                status_code=status_code,
                error_kind=error_kind.value if error_kind else None,
                delay_ms=delay_ms,
            )
        )

    @staticmethod
    def _to_error(
        failure: _Failure,
        descriptor: RequestDescriptor,
        correlation_id: str,
        attempts: int,
        exhausted: bool,
    ) -> ApiError:
        return error_for(
            failure.kind,
            failure.raw_message,
            http_status=failure.http_status,
            method=descriptor.method,
            path=descriptor.path,
            correlation_id=correlation_id,
            attempts=attempts,
            retries_exhausted=exhausted,
            retry_after=failure.retry_after,
            response_data=failure.response_data,
        )


def _decode(response: httpx.Response) -> Any:
    """Decode a response body: JSON when declared, text otherwise, None if empty."""
    if not response.content:
        return None
    if "json" in response.headers.get("content-type", ""):
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


def _failure_from_response(response: httpx.Response) -> _Failure:
    data = _decode(response)
    return _Failure(
        kind=classify(response.status_code),
        raw_message=_extract_message(data, response),
        http_status=response.status_code,
        retry_after=parse_retry_after(response.headers.get("Retry-After")),
        response_data=data,
    )


def _extract_message(data: Any, response: httpx.Response) -> str:
    """Pull the server's message out of a Graph style error envelope."""
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if data.get("message"):
            return str(data["message"])
    if isinstance(data, str) and data:
        return data[:200]
    return response.reason_phrase
