"""Ordered URL template filters and stock macro and query-parameter filters."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Mapping, Optional
from urllib.parse import parse_qsl, quote, urlencode, urlparse, urlunparse

logger = logging.getLogger(__name__)

URLFilter = Callable[[str], str]


class FilterChain:
    """Ordered URL template filters applied before every fetch.

    Filters compose left to right in registration order. The chain is not
    guarded; register filters before starting concurrent fetches.
    """

    def __init__(self) -> None:
        self._filters: List[URLFilter] = []

    def add(self, url_filter: URLFilter) -> None:
        """Append *url_filter*; anything that is not callable is ignored."""
        if callable(url_filter):
            self._filters.append(url_filter)
        else:
            logger.debug("ignoring non-callable url filter %r", url_filter)

    def remove_last(self) -> None:
        if self._filters:
            self._filters.pop()

    def count(self) -> int:
        return len(self._filters)

    def clear(self) -> None:
        self._filters = []

    def apply(self, url: str) -> str:
        """Fold every filter over *url*. Filter exceptions propagate."""
        for url_filter in self._filters:
            url = url_filter(url)
        return url

    def __len__(self) -> int:
        return len(self._filters)

    def __iter__(self) -> Iterator[URLFilter]:
        return iter(list(self._filters))


def _cachebuster() -> str:
    # VAST 3/4 define CACHEBUSTING as a random 8-digit number
    return f"{secrets.randbelow(10 ** 8):08d}"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


_GENERATED_MACROS: Mapping[str, Callable[[], str]] = {
    "CACHEBUSTING": _cachebuster,
    "TIMESTAMP": _timestamp,
}


def macro_filter(macros: Optional[Mapping[str, object]] = None, *, generate: bool = True) -> URLFilter:
    """Return a filter replacing ``[NAME]`` macros with URL-encoded values.

    Explicit *macros* win over generated ones. With *generate* set,
    ``[CACHEBUSTING]`` and ``[TIMESTAMP]`` are filled per call when not given.
    Unknown macros are left untouched.
    """

    fixed = {str(k).strip("[]").upper(): "" if v is None else str(v) for k, v in (macros or {}).items()}

    def _apply(url: str) -> str:
        values = dict(fixed)
        if generate:
            for name, factory in _GENERATED_MACROS.items():
                if name not in values and f"[{name}]" in url:
                    values[name] = factory()
        for name, value in values.items():
            url = url.replace(f"[{name}]", quote(value, safe=""))
        return url

    return _apply


def query_param_filter(name: str, value: object) -> URLFilter:
    """Return a filter that adds or replaces one query parameter."""

    key = (name or "").strip()
    if not key:
        raise ValueError("query parameter name must be non-empty")
    text = "" if value is None else str(value)

    def _apply(url: str) -> str:
        parsed = urlparse(url)
        pairs = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != key]
        pairs.append((key, text))
        return urlunparse(parsed._replace(query=urlencode(pairs)))

    return _apply


__all__ = [
    "URLFilter",
    "FilterChain",
    "macro_filter",
    "query_param_filter",
]
