"""
RequestTelemetry - Structured events for every attempt and warning.

The executor and page iterator never log directly; they hand events to a
TelemetrySink. LoggingTelemetry is the default sink and writes through loguru.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Literal

from loguru import logger

Outcome = Literal["success", "retry", "failure"]


@dataclass(frozen=True)
class AttemptEvent:
    """One attempt of a logical call."""

    method: str
    path: str
    correlation_id: str
    attempt: int
    outcome: Outcome
    duration_ms: float
    status_code: int | None = None
    error_kind: str | None = None
    delay_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class WarningEvent:
    """A non-fatal condition worth surfacing (e.g. page cap reached)."""

    code: str
    message: str
    path: str
    correlation_id: str | None = None
    pages: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TelemetrySink(ABC):
    """Receives attempt and warning events."""

    @abstractmethod
    def record_attempt(self, event: AttemptEvent) -> None: ...

    @abstractmethod
    def record_warning(self, event: WarningEvent) -> None: ...


class LoggingTelemetry(TelemetrySink):
    """Writes events to loguru with the event fields bound as extras."""

    def record_attempt(self, event: AttemptEvent) -> None:
        log = logger.bind(**event.to_dict())
        summary = (
            f"{event.method} {event.path} attempt {event.attempt + 1} "
            f"{event.outcome} in {event.duration_ms:.0f}ms "
            f"[{event.correlation_id}]"
        )
        if event.outcome == "success":
            log.debug(summary)
        elif event.outcome == "retry":
            log.warning(
                f"{summary}: {event.error_kind} ({event.status_code}), "
                f"retrying in {event.delay_ms}ms"
            )
        else:
            log.error(f"{summary}: {event.error_kind} ({event.status_code})")

    def record_warning(self, event: WarningEvent) -> None:
        logger.bind(**event.to_dict()).warning(f"{event.path}: {event.message}")


class RecordingTelemetry(TelemetrySink):
    """Keeps events in memory; handy for diagnostics and tests."""

    def __init__(self):
        self.attempts: list[AttemptEvent] = []
        self.warnings: list[WarningEvent] = []

    def record_attempt(self, event: AttemptEvent) -> None:
        self.attempts.append(event)

    def record_warning(self, event: WarningEvent) -> None:
        self.warnings.append(event)
