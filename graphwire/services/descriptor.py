"""
Request and response records passed between domain handlers and the executor.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar
from urllib.parse import quote

from graphwire.services.errors import DescriptorError

T = TypeVar("T")

METHODS = ("GET", "POST", "PATCH", "PUT", "DELETE")
BODY_METHODS = ("POST", "PATCH", "PUT")

_PLACEHOLDER = re.compile(r"\{([^{}/]+)\}")


def is_absolute_url(path: str) -> bool:
    return path.startswith(("http://", "https://"))


def _header_pairs(headers: Any) -> tuple[tuple[str, str], ...]:
    if not headers:
        return ()
    items = headers.items() if isinstance(headers, Mapping) else headers
    return tuple((str(name), str(value)) for name, value in items)


@dataclass(frozen=True)
class QueryModifiers:
    """OData style query options; each is optional and independent."""

    select: tuple[str, ...] = ()
    filter: str | None = None
    expand: tuple[str, ...] = ()
    top: int | None = None
    skip: int | None = None
    order_by: str | None = None
    count: bool = False

    def __post_init__(self):
        # Accept any iterable of field names, including a single string
        for name in ("select", "expand"):
            value = getattr(self, name)
            if isinstance(value, str):
                value = (value,)
            object.__setattr__(self, name, tuple(value))
        if self.top is not None and self.top <= 0:
            raise DescriptorError(f"$top must be positive, got {self.top}")
        if self.skip is not None and self.skip < 0:
            raise DescriptorError(f"$skip cannot be negative, got {self.skip}")

    def to_params(self) -> dict[str, str]:
        """Query parameters in a fixed order regardless of how they were set."""
        params: dict[str, str] = {}
        if self.select:
            params["$select"] = ",".join(self.select)
        if self.filter:
            params["$filter"] = self.filter
        if self.expand:
            params["$expand"] = ",".join(self.expand)
        if self.top is not None:
            params["$top"] = str(self.top)
        if self.skip is not None:
            params["$skip"] = str(self.skip)
        if self.order_by:
            params["$orderby"] = self.order_by
        if self.count:
            params["$count"] = "true"
        return params


@dataclass(frozen=True)
class RequestDescriptor:
    """
    One logical request, immutable once built.

    Usage:
        descriptor = RequestDescriptor.for_path(
            "/users/{user_id}/memberOf",
            {"user_id": "alice@contoso.com"},
            query=QueryModifiers(select=["id", "displayName"], top=50),
        )
    """

    method: str
    path: str
    query: QueryModifiers = field(default_factory=QueryModifiers)
    body: Any = field(default=None, hash=False)
    # Given as a mapping or (name, value) pairs; stored as a tuple of pairs
    headers: tuple[tuple[str, str], ...] = ()
    max_retries: int = 3

    def __post_init__(self):
        method = self.method.upper()
        if method not in METHODS:
            raise DescriptorError(f"Unsupported HTTP method: {self.method}")
        object.__setattr__(self, "method", method)

        if not is_absolute_url(self.path):
            unresolved = _PLACEHOLDER.findall(self.path)
            if unresolved:
                raise DescriptorError(
                    f"Unresolved path placeholders in '{self.path}': "
                    f"{', '.join(unresolved)}"
                )

        if method in BODY_METHODS and self.body is None:
            raise DescriptorError(f"{method} {self.path} requires a body")
        if method not in BODY_METHODS and self.body is not None:
            raise DescriptorError(f"{method} {self.path} cannot carry a body")

        if self.max_retries < 1:
            raise DescriptorError(
                f"max_retries must be a positive integer, got {self.max_retries}"
            )

        object.__setattr__(self, "headers", _header_pairs(self.headers))

    @classmethod
    def for_path(
        cls,
        template: str,
        params: Mapping[str, Any] | None = None,
        method: str = "GET",
        **kwargs: Any,
    ) -> "RequestDescriptor":
        """Resolve ``{name}`` tokens in ``template`` and build a descriptor."""
        params = params or {}

        def substitute(match: re.Match) -> str:
            name = match.group(1)
            if name not in params:
                # Left in place so __post_init__ reports every missing token
                return match.group(0)
            return quote(str(params[name]), safe="@")

        path = _PLACEHOLDER.sub(substitute, template)
        return cls(method=method, path=path, **kwargs)

    def follow(self, link: str) -> "RequestDescriptor":
        """
        Descriptor for a server issued continuation link.

        The link already encodes the query, so modifiers are dropped.
        """
        return replace(self, method="GET", path=link, query=QueryModifiers(), body=None)

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup; the last occurrence wins."""
        wanted = name.lower()
        value = default
        for key, candidate in self.headers:
            if key.lower() == wanted:
                value = candidate
        return value


@dataclass
class ResponseEnvelope(Generic[T]):
    """Result of one successful logical call."""

    data: T
    correlation_id: str
    duration_ms: float
    attempts: int = 1
    status_code: int = 200
