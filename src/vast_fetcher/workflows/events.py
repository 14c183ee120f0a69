"""Lifecycle events emitted around every VAST fetch attempt."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, Optional, Protocol, Union, runtime_checkable

from ..core.keys import (
    K_DURATION,
    K_ERROR,
    K_MAX_WRAPPER_DEPTH,
    K_PREVIOUS_URL,
    K_STATUS_CODE,
    K_TIMEOUT,
    K_URL,
    K_WRAPPER_AD,
    K_WRAPPER_DEPTH,
)
from .fetcher_config import EVENT_RESOLVED, EVENT_RESOLVING

Emitter = Callable[[str, Dict[str, Any]], None]


@dataclass(frozen=True)
class ResolvingEvent:
    """Emitted once the URL is filtered, right before the transport call."""

    name: ClassVar[str] = EVENT_RESOLVING

    url: str
    previous_url: Optional[str]
    wrapper_depth: int
    max_wrapper_depth: int
    timeout: int
    wrapper_ad: Any = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            K_URL: self.url,
            K_PREVIOUS_URL: self.previous_url,
            K_WRAPPER_DEPTH: self.wrapper_depth,
            K_MAX_WRAPPER_DEPTH: self.max_wrapper_depth,
            K_TIMEOUT: self.timeout,
            K_WRAPPER_AD: self.wrapper_ad,
        }


@dataclass(frozen=True)
class ResolvedEvent:
    """Emitted once the transport returned, whatever the outcome.

    ``details`` holds whatever diagnostics the transport attached; the fixed
    fields take precedence when a key collides.
    """

    name: ClassVar[str] = EVENT_RESOLVED

    url: str
    previous_url: Optional[str]
    wrapper_depth: int
    error: Any
    duration: int
    status_code: Optional[int]
    details: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload = dict(self.details or {})
        payload.update(
            {
                K_URL: self.url,
                K_PREVIOUS_URL: self.previous_url,
                K_WRAPPER_DEPTH: self.wrapper_depth,
                K_ERROR: self.error,
                K_DURATION: self.duration,
                K_STATUS_CODE: self.status_code,
            }
        )
        return payload


@runtime_checkable
class FetchObserver(Protocol):
    """Receives the two lifecycle events of a fetch attempt, synchronously."""

    def on_resolving(self, event: ResolvingEvent) -> None:
        ...

    def on_resolved(self, event: ResolvedEvent) -> None:
        ...


class EmitterObserver:
    """Adapts a plain ``emitter(name, payload)`` callable to FetchObserver."""

    def __init__(self, emitter: Emitter) -> None:
        self.emitter = emitter

    def on_resolving(self, event: ResolvingEvent) -> None:
        self.emitter(event.name, event.to_payload())

    def on_resolved(self, event: ResolvedEvent) -> None:
        self.emitter(event.name, event.to_payload())


class _NullObserver:
    def on_resolving(self, event: ResolvingEvent) -> None:
        return None

    def on_resolved(self, event: ResolvedEvent) -> None:
        return None


EventSink = Union[FetchObserver, Emitter, None]


def as_observer(sink: EventSink) -> FetchObserver:
    """Normalize an observer, an emitter callable or None into an observer."""

    if sink is None:
        return _NullObserver()
    if isinstance(sink, FetchObserver):
        return sink
    if callable(sink):
        return EmitterObserver(sink)
    raise TypeError(f"unsupported event sink: {type(sink).__name__}")


__all__ = [
    "Emitter",
    "EventSink",
    "ResolvingEvent",
    "ResolvedEvent",
    "FetchObserver",
    "EmitterObserver",
    "as_observer",
]
