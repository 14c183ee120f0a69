"""Resolve a single VAST document: filter the URL, fetch it, report on it.

``VASTFetcher`` runs one fetch attempt per call. Around the transport call it
emits a ``VAST-resolving`` and a ``VAST-resolved`` event, and feeds the
response size and latency into a bitrate estimator. Wrapper-chain traversal
is left to the caller, which calls ``fetch_vast`` again with a deeper
``wrapper_depth`` for every wrapper it follows.

Every attempt terminates: transport-reported errors surface as the error of
the outcome, and anything unexpected raised by the transport or an event
sink is logged and turned into an ``InternalFetchError`` outcome.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..core.keys import K_BYTE_LENGTH
from .bitrate import BitrateEstimator
from .events import EventSink, ResolvedEvent, ResolvingEvent, as_observer
from .fetcher_config import DEFAULT_MAX_WRAPPER_DEPTH, DEFAULT_TIMEOUT_MS
from .url_filters import FilterChain, URLFilter
from .url_handler import (
    AiohttpURLHandler,
    FetchOptions,
    URLHandler,
    coerce_transport_result,
)

logger = logging.getLogger(__name__)


class FetchStage(str, Enum):
    """Lifecycle of one fetch attempt, in order."""

    IDLE = "idle"
    FILTERS_APPLIED = "filters_applied"
    RESOLVING = "resolving"
    AWAITING = "awaiting"
    RESOLVED = "resolved"
    SETTLED = "settled"


class VASTFetchError(Exception):
    """Raised by ``fetch_vast`` when a transport reported a non-exception error value."""

    def __init__(self, error: Any) -> None:
        self.error = error
        super().__init__(str(error))


class InternalFetchError(Exception):
    """The transport or an event sink raised instead of reporting an error.

    ``stage`` is the last stage the attempt reached; the original exception
    is chained as ``__cause__``.
    """

    def __init__(self, message: str, stage: FetchStage) -> None:
        self.stage = stage
        super().__init__(message)


@dataclass(frozen=True)
class FetchRequest:
    url: str
    max_wrapper_depth: int = DEFAULT_MAX_WRAPPER_DEPTH
    emitter: EventSink = None
    wrapper_depth: int = 0
    previous_url: Optional[str] = None
    wrapper_ad: Any = None


@dataclass
class FetchOutcome:
    """Result of one attempt: ``document_text`` on success, ``error`` otherwise."""

    url: str
    document_text: Optional[str] = None
    error: Any = None
    status_code: Optional[int] = None
    duration_ms: Optional[int] = None
    stage: FetchStage = FetchStage.SETTLED

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[str]:
        """Return the document text or raise the error.

        Exceptions are raised unchanged; any other error value is raised as
        ``VASTFetchError`` carrying it in ``.error``.
        """
        if self.error is None:
            return self.document_text
        if isinstance(self.error, BaseException):
            raise self.error
        raise VASTFetchError(self.error)


class VASTFetcher:
    """Fetches VAST documents through a configurable URL handler."""

    def __init__(self, bitrate_estimator: Optional[BitrateEstimator] = None) -> None:
        self.url_template_filters = FilterChain()
        self.bitrate_estimator = bitrate_estimator if bitrate_estimator is not None else BitrateEstimator()
        self.url_handler: Optional[URLHandler] = None
        self.fetching_options: Optional[FetchOptions] = None

    def set_options(
        self,
        url_handler: Optional[URLHandler] = None,
        timeout_ms: Optional[int] = None,
        send_credentials: Any = False,
    ) -> FetchOptions:
        """Replace the whole fetching configuration; nothing is merged."""
        self.url_handler = url_handler if url_handler is not None else AiohttpURLHandler()
        self.fetching_options = FetchOptions(
            timeout_ms=timeout_ms or DEFAULT_TIMEOUT_MS,
            send_credentials=bool(send_credentials),
        )
        return self.fetching_options

    configure = set_options

    def add_url_template_filter(self, url_filter: URLFilter) -> None:
        self.url_template_filters.add(url_filter)

    def remove_last_url_template_filter(self) -> None:
        self.url_template_filters.remove_last()

    def count_url_template_filters(self) -> int:
        return self.url_template_filters.count()

    def clear_url_template_filters(self) -> None:
        self.url_template_filters.clear()

    async def fetch_outcome(self, request: FetchRequest) -> FetchOutcome:
        """Run one attempt and return its outcome.

        Filter exceptions propagate before any event is emitted. Everything
        after filtering ends in a FetchOutcome.
        """
        if self.fetching_options is None or self.url_handler is None:
            self.set_options()
        options = self.fetching_options
        handler = self.url_handler
        observer = as_observer(request.emitter)

        time_before_get = time.perf_counter()
        url = self.url_template_filters.apply(request.url)
        stage = FetchStage.FILTERS_APPLIED

        try:
            observer.on_resolving(
                ResolvingEvent(
                    url=url,
                    previous_url=request.previous_url,
                    wrapper_depth=request.wrapper_depth,
                    max_wrapper_depth=request.max_wrapper_depth,
                    timeout=options.timeout_ms,
                    wrapper_ad=request.wrapper_ad,
                )
            )
            stage = FetchStage.RESOLVING
            logger.debug(
                "resolving %s (depth %d/%d, timeout %d ms)",
                url,
                request.wrapper_depth,
                request.max_wrapper_depth,
                options.timeout_ms,
            )

            stage = FetchStage.AWAITING
            result = coerce_transport_result(await handler.get(url, options))
            duration = int(round((time.perf_counter() - time_before_get) * 1000))
            details = dict(result.details or {})

            observer.on_resolved(
                ResolvedEvent(
                    url=url,
                    previous_url=request.previous_url,
                    wrapper_depth=request.wrapper_depth,
                    error=result.error or None,
                    duration=duration,
                    status_code=result.status_code or None,
                    details=details,
                )
            )
            stage = FetchStage.RESOLVED
            self.bitrate_estimator.update(details.get(K_BYTE_LENGTH), duration)
        except Exception as exc:
            logger.exception("VAST fetch of %s aborted at stage %s", url, stage.value)
            error = InternalFetchError(f"unexpected error while fetching {url}: {exc}", stage)
            error.__cause__ = exc
            return FetchOutcome(url=url, error=error, stage=stage)

        if result.error:
            logger.debug("VAST fetch of %s failed in %d ms: %s", url, duration, result.error)
            return FetchOutcome(
                url=url,
                error=result.error,
                status_code=result.status_code or None,
                duration_ms=duration,
            )
        logger.debug("VAST fetch of %s succeeded in %d ms", url, duration)
        return FetchOutcome(
            url=url,
            document_text=result.document_text,
            status_code=result.status_code or None,
            duration_ms=duration,
        )

    async def fetch_vast(self, request: FetchRequest) -> Optional[str]:
        """Return the raw VAST document text, raising the attempt's error on failure."""
        outcome = await self.fetch_outcome(request)
        return outcome.unwrap()

    fetch = fetch_vast


__all__ = [
    "FetchStage",
    "VASTFetchError",
    "InternalFetchError",
    "FetchRequest",
    "FetchOutcome",
    "VASTFetcher",
]
