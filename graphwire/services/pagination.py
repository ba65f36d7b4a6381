"""
PageIterator - Lazy traversal of a continuation-linked result set.

Each page is fetched only when the caller asks for the next batch, so the
caller sets the pace. Continuation links are opaque: they are followed
exactly as the server issued them and never parsed or rebuilt.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from graphwire.services.descriptor import RequestDescriptor
from graphwire.services.executor import RequestExecutor
from graphwire.services.telemetry import WarningEvent

ITEMS_KEY = "value"
NEXT_LINK_KEY = "@odata.nextLink"
DELTA_LINK_KEY = "@odata.deltaLink"

DEFAULT_PAGE_CAP = 100


@dataclass
class DeltaResult:
    """All changes from a delta traversal plus the link to resume from."""

    items: list[Any] = field(default_factory=list)
    delta_link: str | None = None
    pages: int = 0


@dataclass
class PageProgress:
    """Counters for a single traversal."""

    pages_fetched: int = 0
    delta_link: str | None = None


class PageIterator:
    """
    Async iterable over the item batches of a paginated endpoint.

    Every ``async for`` starts a fresh traversal from the first page;
    abandoning a loop early needs no cleanup. Traversals share no state,
    so one instance may be iterated by several consumers at once.

    Usage:
        pages = PageIterator(executor, RequestDescriptor("GET", "/users"))

        async for batch in pages:
            for user in batch:
                ...

        everything = await pages.collect()
    """

    def __init__(
        self,
        executor: RequestExecutor,
        descriptor: RequestDescriptor,
        page_cap: int = DEFAULT_PAGE_CAP,
    ):
        if page_cap < 1:
            raise ValueError(f"page_cap must be positive, got {page_cap}")
        self._executor = executor
        self._descriptor = descriptor
        self._page_cap = page_cap

    def __aiter__(self) -> AsyncIterator[list[Any]]:
        return self.pages()

    async def pages(
        self, progress: PageProgress | None = None
    ) -> AsyncIterator[list[Any]]:
        """
        Traverse from the first page, yielding non-empty item batches.

        Args:
            progress: Optional record updated as pages arrive
        """
        progress = progress if progress is not None else PageProgress()
        descriptor = self._descriptor

        while True:
            envelope = await self._executor.execute(descriptor)
            progress.pages_fetched += 1
            data = envelope.data if isinstance(envelope.data, dict) else {}

            items = data.get(ITEMS_KEY) or []
            if items:
                yield items

            next_link = data.get(NEXT_LINK_KEY)
            if not next_link:
                progress.delta_link = data.get(DELTA_LINK_KEY)
                return

            if progress.pages_fetched >= self._page_cap:
                self._executor.telemetry.record_warning(
                    WarningEvent(
                        code="page_cap_reached",
                        message=f"Pagination limit reached ({self._page_cap} pages)",
                        path=self._descriptor.path,
                        correlation_id=envelope.correlation_id,
                        pages=progress.pages_fetched,
                    )
                )
                return

            descriptor = self._descriptor.follow(next_link)

    async def collect(self, progress: PageProgress | None = None) -> list[Any]:
        """Fetch every page and return all items in server order."""
        buffer: list[Any] = []
        async for batch in self.pages(progress):
            buffer.extend(batch)
        return buffer

    async def delta(self) -> DeltaResult:
        """
        Drain a delta query.

        Returns:
            DeltaResult whose ``delta_link`` should be passed back unchanged
            (as the path of a new descriptor) to fetch later changes
        """
        progress = PageProgress()
        items = await self.collect(progress)
        return DeltaResult(
            items=items,
            delta_link=progress.delta_link,
            pages=progress.pages_fetched,
        )
