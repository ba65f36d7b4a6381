"""Shared fixtures: a fake clock and an executor wired to httpx.MockTransport."""

from collections.abc import Callable

import httpx
import pytest

from graphwire.services.backoff import BackoffController, BackoffPolicy
from graphwire.services.executor import RequestExecutor
from graphwire.services.telemetry import RecordingTelemetry
from tests.helpers import BASE_URL


class FakeClock:
    """Monotonic clock that only moves when sleep() is awaited."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def telemetry() -> RecordingTelemetry:
    return RecordingTelemetry()


@pytest.fixture
def make_executor(clock, telemetry):
    """Factory building a RequestExecutor around a request handler."""

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        max_retries: int = 3,
        follow_redirects: bool = False,
        **kwargs,
    ) -> RequestExecutor:
        http_client = httpx.AsyncClient(
            base_url=BASE_URL,
            transport=httpx.MockTransport(handler),
            follow_redirects=follow_redirects,
        )
        kwargs.setdefault("id_factory", lambda: "corr-1")
        return RequestExecutor(
            http_client,
            backoff=BackoffController(BackoffPolicy(max_retries=max_retries)),
            telemetry=telemetry,
            sleep=clock.sleep,
            clock=clock,
            **kwargs,
        )

    return factory
