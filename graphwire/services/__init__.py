"""
Service layer infrastructure - resilience patterns for remote API calls.

Provides:
- classify / ErrorKind: Closed error taxonomy for HTTP failures
- BackoffController: Retry delays with server hints as a floor
- RequestExecutor: Retry loop with correlation ids and telemetry
- PageIterator: Lazy traversal of continuation-linked result sets
- BatchMultiplexer: Many requests in one $batch call, matched by id
- MetadataCache: Write-once per-client lookup cache
- GraphClient: Entry point combining all of the above
"""

from graphwire.services.errors import (
    ServiceError,
    DescriptorError,
    ApiError,
    InvalidRequestError,
    AuthenticationFailedError,
    AccessDeniedError,
    RateLimitedError,
    ServerError,
    UnknownApiError,
    BatchProtocolError,
)
from graphwire.services.classifier import ErrorKind, classify
from graphwire.services.backoff import BackoffController, BackoffPolicy
from graphwire.services.descriptor import (
    QueryModifiers,
    RequestDescriptor,
    ResponseEnvelope,
)
from graphwire.services.telemetry import (
    AttemptEvent,
    WarningEvent,
    TelemetrySink,
    LoggingTelemetry,
    RecordingTelemetry,
)
from graphwire.services.credentials import CredentialProvider, StaticCredentialProvider
from graphwire.services.executor import RequestExecutor
from graphwire.services.pagination import DeltaResult, PageIterator, PageProgress
from graphwire.services.batch import BatchItem, BatchMultiplexer, BatchResult
from graphwire.services.cache import MetadataCache
from graphwire.services.client import GraphClient

__all__ = [
    # Errors
    "ServiceError",
    "DescriptorError",
    "ApiError",
    "InvalidRequestError",
    "AuthenticationFailedError",
    "AccessDeniedError",
    "RateLimitedError",
    "ServerError",
    "UnknownApiError",
    "BatchProtocolError",
    # Classification and backoff
    "ErrorKind",
    "classify",
    "BackoffController",
    "BackoffPolicy",
    # Requests
    "QueryModifiers",
    "RequestDescriptor",
    "ResponseEnvelope",
    "RequestExecutor",
    # Telemetry
    "AttemptEvent",
    "WarningEvent",
    "TelemetrySink",
    "LoggingTelemetry",
    "RecordingTelemetry",
    # Credentials
    "CredentialProvider",
    "StaticCredentialProvider",
    # Pagination and batching
    "DeltaResult",
    "PageIterator",
    "PageProgress",
    "BatchItem",
    "BatchMultiplexer",
    "BatchResult",
    # Cache
    "MetadataCache",
    # Client
    "GraphClient",
]
