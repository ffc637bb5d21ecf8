"""Engine components: query → dispatch → extract, plus the backend stream."""

from .cancellation import CancellationRegistry, CancellationToken
from .dispatcher import QueuedRequest, RequestDispatcher, SearchResult
from .errors import (
    BackendStreamError,
    BadStatusError,
    BotChallengeError,
    EmptyResponseError,
    OperationCancelled,
    PauseShopError,
    RequestTimeout,
    TransientRequestError,
    TransportError,
)
from .events import (
    Category,
    CompleteEvent,
    ErrorEvent,
    ProductEvent,
    StreamEvent,
    TargetGender,
    classify_payload,
    parse_event_line,
)
from .extraction import ExtractionEngine, ScrapedProduct
from .providers import SearchProvider, build_providers
from .query import SearchQuery, build_search_query, query_for_terms
from .stream import LineBuffer, StreamingBackendClient, encode_frame

__all__ = [
    "BackendStreamError",
    "BadStatusError",
    "BotChallengeError",
    "CancellationRegistry",
    "CancellationToken",
    "Category",
    "CompleteEvent",
    "EmptyResponseError",
    "ErrorEvent",
    "ExtractionEngine",
    "LineBuffer",
    "OperationCancelled",
    "PauseShopError",
    "ProductEvent",
    "QueuedRequest",
    "RequestDispatcher",
    "RequestTimeout",
    "ScrapedProduct",
    "SearchProvider",
    "SearchQuery",
    "SearchResult",
    "StreamEvent",
    "StreamingBackendClient",
    "TargetGender",
    "TransientRequestError",
    "TransportError",
    "build_providers",
    "build_search_query",
    "classify_payload",
    "encode_frame",
    "parse_event_line",
    "query_for_terms",
]
