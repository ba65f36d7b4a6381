"""
GraphClient - Entry point that wires the resilient request pipeline.

Combines:
- RequestExecutor for retries, backoff and telemetry
- PageIterator for continuation-linked result sets
- BatchMultiplexer for $batch calls
- MetadataCache for per-client lookup data
"""

import re
from collections.abc import Mapping
from typing import Any

import httpx
from loguru import logger

from graphwire.services.backoff import BackoffController, BackoffPolicy
from graphwire.services.batch import BatchItem, BatchMultiplexer, BatchResult
from graphwire.services.cache import MetadataCache
from graphwire.services.credentials import CredentialProvider, StaticCredentialProvider
from graphwire.services.descriptor import RequestDescriptor, ResponseEnvelope
from graphwire.services.executor import DEFAULT_HEADERS, RequestExecutor
from graphwire.services.pagination import DeltaResult, PageIterator
from graphwire.services.telemetry import TelemetrySink
from graphwire.settings import Settings

_VERSION_SEGMENT = re.compile(r"v\d+(\.\d+)*")


class GraphClient:
    """
    Resilient client for a throttled, paginated REST resource API.

    Usage:
        async with GraphClient.from_settings(global_settings) as client:
            me = await client.execute(RequestDescriptor("GET", "/me"))

            async for users in client.paginate(RequestDescriptor("GET", "/users")):
                ...
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider | None = None,
        scope: str = "",
        backoff_policy: BackoffPolicy | None = None,
        telemetry: TelemetrySink | None = None,
        timeout: float = 30.0,
        page_cap: int = 100,
        batch_max_requests: int = 20,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **executor_options: Any,
    ):
        self._base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._scope = scope
        self._backoff_policy = backoff_policy or BackoffPolicy()
        self._telemetry = telemetry
        self._timeout = timeout
        self._page_cap = page_cap
        self._batch_max_requests = batch_max_requests
        self._headers = {**DEFAULT_HEADERS, **(headers or {})}
        self._transport = transport
        self._executor_options = executor_options

        self._metadata = MetadataCache()

        # HTTP client (lazy initialization)
        self._http_client: httpx.AsyncClient | None = None
        self._executor: RequestExecutor | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: CredentialProvider | None = None,
        telemetry: TelemetrySink | None = None,
        **kwargs: Any,
    ) -> "GraphClient":
        """Build a client from Settings; a static token is used if none given."""
        if credentials is None and settings.graph_access_token:
            credentials = StaticCredentialProvider(settings.graph_access_token)

        headers = {"User-Agent": settings.user_agent}
        if settings.consistency_level:
            headers["ConsistencyLevel"] = settings.consistency_level

        return cls(
            base_url=settings.graph_base_url,
            credentials=credentials,
            scope=settings.graph_scope,
            backoff_policy=BackoffPolicy(
                max_retries=settings.max_retries,
                base_delay_ms=settings.backoff_base_ms,
                jitter_ratio=settings.backoff_jitter,
            ),
            telemetry=telemetry,
            timeout=settings.request_timeout,
            page_cap=settings.page_cap,
            batch_max_requests=settings.batch_max_requests,
            headers=headers,
            **kwargs,
        )

    @property
    def executor(self) -> RequestExecutor:
        """Get or create the executor (and its HTTP client)."""
        if self._executor is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
            self._executor = RequestExecutor(
                self._http_client,
                credentials=self._credentials,
                scope=self._scope,
                backoff=BackoffController(self._backoff_policy),
                telemetry=self._telemetry,
                default_headers=self._headers,
                timeout=self._timeout,
                **self._executor_options,
            )
            logger.debug(f"GraphClient opened for {self._base_url}")
        return self._executor

    @property
    def metadata_cache(self) -> MetadataCache:
        return self._metadata

    def descriptor(self, method: str, path: str, **kwargs: Any) -> RequestDescriptor:
        """Build a descriptor using this client's default retry budget."""
        path_params = kwargs.pop("path_params", None)
        kwargs.setdefault("max_retries", self._backoff_policy.max_retries)
        return RequestDescriptor.for_path(path, path_params, method=method, **kwargs)

    async def execute(self, descriptor: RequestDescriptor) -> ResponseEnvelope[Any]:
        return await self.executor.execute(descriptor)

    def paginate(
        self, descriptor: RequestDescriptor, page_cap: int | None = None
    ) -> PageIterator:
        return PageIterator(self.executor, descriptor, page_cap or self._page_cap)

    async def fetch_all(
        self, descriptor: RequestDescriptor, page_cap: int | None = None
    ) -> list[Any]:
        """Collect every item across all pages."""
        return await self.paginate(descriptor, page_cap).collect()

    async def delta(
        self, descriptor: RequestDescriptor, page_cap: int | None = None
    ) -> DeltaResult:
        """Drain a delta query and return the changes plus the resume link."""
        return await self.paginate(descriptor, page_cap).delta()

    async def batch(self, items: list[BatchItem]) -> list[BatchResult]:
        batcher = BatchMultiplexer(
            self.executor,
            max_batch_size=self._batch_max_requests,
            max_retries=self._backoff_policy.max_retries,
        )
        return await batcher.submit(items)

    async def get_metadata(self, version: str = "v1.0") -> Any:
        """Fetch the service $metadata document once per version."""

        async def fetch() -> Any:
            descriptor = RequestDescriptor(
                "GET",
                f"{_service_root(self._base_url)}/{version}/$metadata",
                max_retries=self._backoff_policy.max_retries,
            )
            return (await self.executor.execute(descriptor)).data

        return await self._metadata.get_or_fetch(f"metadata_{version}", fetch)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
            self._executor = None
        logger.debug("GraphClient closed")

    async def __aenter__(self) -> "GraphClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()


def _service_root(base_url: str) -> str:
    """Strip a trailing version segment (v1.0, beta) from the base URL."""
    head, _, last = base_url.rstrip("/").rpartition("/")
    if head and (last == "beta" or _VERSION_SEGMENT.fullmatch(last)):
        return head
    return base_url.rstrip("/")
