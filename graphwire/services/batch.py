"""
BatchMultiplexer - Packs independent requests into one $batch call.

The whole batch goes through the RequestExecutor, so it is retried as a
unit. Results are matched to requests strictly by id; a result missing
for any submitted id is a protocol error, never silently dropped.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from graphwire.services.descriptor import METHODS, RequestDescriptor
from graphwire.services.errors import BatchProtocolError, DescriptorError
from graphwire.services.executor import RequestExecutor

BATCH_PATH = "/$batch"
DEFAULT_MAX_BATCH_SIZE = 20


@dataclass(frozen=True)
class BatchItem:
    """One sub-request; ``url`` is relative to the API version root."""

    id: str
    method: str
    url: str
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "method": self.method.upper(),
            "url": self.url,
            "headers": dict(self.headers),
        }
        if self.body is not None:
            payload["body"] = self.body
        return payload


@dataclass(frozen=True)
class BatchResult:
    """Response to one sub-request."""

    id: str
    status: int
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass
class BatchSummary:
    total: int
    success_count: int
    error_count: int


class BatchMultiplexer:
    """
    Submits batches through a RequestExecutor.

    Usage:
        batcher = BatchMultiplexer(executor)
        results = await batcher.submit([
            BatchItem(id="me", method="GET", url="/me"),
            BatchItem(id="groups", method="GET", url="/me/memberOf"),
        ])
    """

    def __init__(
        self,
        executor: RequestExecutor,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        max_retries: int = 3,
    ):
        self._executor = executor
        self._max_batch_size = max_batch_size
        self._max_retries = max_retries

    async def submit(self, items: list[BatchItem]) -> list[BatchResult]:
        """
        Send ``items`` as a single batch.

        Returns:
            One BatchResult per submitted item, in submission order

        Raises:
            DescriptorError: empty batch, too many items, duplicate ids or
                an unsupported method
            BatchProtocolError: the response is malformed or lacks a result
                for some id
            ApiError: the batch call itself failed
        """
        self._validate(items)

        descriptor = RequestDescriptor(
            method="POST",
            path=BATCH_PATH,
            body={"requests": [item.to_wire() for item in items]},
            max_retries=self._max_retries,
        )
        envelope = await self._executor.execute(descriptor)

        submitted = [item.id for item in items]

        def protocol_error(missing: list[str], detail: str | None = None):
            return BatchProtocolError(
                missing,
                detail,
                method=descriptor.method,
                path=descriptor.path,
                correlation_id=envelope.correlation_id,
                response_data=envelope.data,
            )

        data = envelope.data if isinstance(envelope.data, dict) else {}
        responses = data.get("responses") or []
        if not isinstance(responses, list):
            raise protocol_error(
                submitted,
                f"Batch 'responses' must be a list, got {type(responses).__name__}",
            )

        by_id: dict[str, BatchResult] = {}
        for index, raw in enumerate(responses):
            if not isinstance(raw, dict):
                raise protocol_error(
                    submitted, f"Batch response entry {index} is not an object"
                )
            try:
                status = int(raw["status"])
            except (KeyError, TypeError, ValueError):
                raise protocol_error(
                    submitted,
                    f"Batch response entry {index} has invalid status: "
                    f"{raw.get('status')!r}",
                ) from None
            result = BatchResult(
                id=str(raw.get("id")),
                status=status,
                body=raw.get("body"),
                headers=raw.get("headers") or {},
            )
            by_id[result.id] = result

        missing = [item_id for item_id in submitted if item_id not in by_id]
        if missing:
            raise protocol_error(missing)

        unexpected = set(by_id) - set(submitted)
        if unexpected:
            logger.warning(
                f"Batch {envelope.correlation_id} returned unknown ids: "
                f"{sorted(unexpected)}"
            )

        return [by_id[item_id] for item_id in submitted]

    @staticmethod
    def summarize(results: list[BatchResult]) -> BatchSummary:
        success = sum(1 for result in results if result.ok)
        return BatchSummary(
            total=len(results),
            success_count=success,
            error_count=len(results) - success,
        )

    def _validate(self, items: list[BatchItem]) -> None:
        if not items:
            raise DescriptorError("At least one request is required for a batch")
        if len(items) > self._max_batch_size:
            raise DescriptorError(
                f"Maximum {self._max_batch_size} requests allowed per batch, "
                f"got {len(items)}"
            )

        duplicates = [i for i, n in Counter(item.id for item in items).items() if n > 1]
        if duplicates:
            raise DescriptorError(f"Duplicate batch ids: {', '.join(duplicates)}")

        for item in items:
            if item.method.upper() not in METHODS:
                raise DescriptorError(
                    f"Unsupported HTTP method in batch item '{item.id}': {item.method}"
                )
