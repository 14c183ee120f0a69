"""High-level exports for the VAST fetch workflow."""

from .bitrate import BitrateEstimator
from .events import EmitterObserver, FetchObserver, ResolvedEvent, ResolvingEvent, as_observer
from .fetcher import (
    FetchOutcome,
    FetchRequest,
    FetchStage,
    InternalFetchError,
    VASTFetchError,
    VASTFetcher,
)
from .fetcher_config import DEFAULT_MAX_WRAPPER_DEPTH, DEFAULT_TIMEOUT_MS, EVENT_RESOLVED, EVENT_RESOLVING
from .url_filters import FilterChain, macro_filter, query_param_filter
from .url_handler import AiohttpURLHandler, FetchOptions, TransportError, TransportResult, URLHandler

__all__ = [
    "AiohttpURLHandler",
    "BitrateEstimator",
    "DEFAULT_MAX_WRAPPER_DEPTH",
    "DEFAULT_TIMEOUT_MS",
    "EVENT_RESOLVED",
    "EVENT_RESOLVING",
    "EmitterObserver",
    "FetchObserver",
    "FetchOptions",
    "FetchOutcome",
    "FetchRequest",
    "FetchStage",
    "FilterChain",
    "InternalFetchError",
    "ResolvedEvent",
    "ResolvingEvent",
    "TransportError",
    "TransportResult",
    "URLHandler",
    "VASTFetchError",
    "VASTFetcher",
    "as_observer",
    "macro_filter",
    "query_param_filter",
]
