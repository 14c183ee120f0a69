"""Transport contract for VAST retrieval and the default aiohttp implementation."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable
from urllib.parse import urlparse

import aiohttp
from aiohttp.abc import AbstractCookieJar

from ..core.keys import K_BYTE_LENGTH, K_REQUEST_DURATION_MS, K_STATUS_CODE
from .fetcher_config import ACCEPT_VAST, DEFAULT_TIMEOUT_MS, HDR_ACCEPT, SUPPORTED_SCHEMES

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """A transport reported that the VAST document could not be retrieved."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class FetchOptions:
    """Options handed to the transport on every fetch."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    send_credentials: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.timeout_ms, bool) or not isinstance(self.timeout_ms, (int, float)):
            raise TypeError(f"timeout_ms must be a number, got {type(self.timeout_ms).__name__}")
        # fractional milliseconds round up so a positive timeout never becomes 0
        object.__setattr__(self, "timeout_ms", int(math.ceil(self.timeout_ms)))
        object.__setattr__(self, "send_credentials", bool(self.send_credentials))
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")


@dataclass
class TransportResult:
    """What a transport returns. ``error`` set means the fetch failed."""

    error: Any = None
    status_code: Optional[int] = None
    document_text: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


_DETAIL_ALIASES = {
    "byteLength": K_BYTE_LENGTH,
    "requestDurationMs": K_REQUEST_DURATION_MS,
    "statusCode": K_STATUS_CODE,
}


def normalize_details(details: Any) -> Optional[Dict[str, Any]]:
    """Copy ``details`` with camelCase keys renamed to snake_case.

    When both spellings are present the snake_case value is kept.
    """

    if not isinstance(details, Mapping):
        return None
    out: Dict[str, Any] = {}
    for key, val in details.items():
        if key in _DETAIL_ALIASES:
            continue
        out[key] = val
    for alias, key in _DETAIL_ALIASES.items():
        if alias in details and key not in out:
            out[key] = details[alias]
    return out


def coerce_transport_result(value: Any) -> TransportResult:
    """Accept a TransportResult or a mapping with the same (or camelCase) keys."""

    if isinstance(value, TransportResult):
        if value.details is None:
            return value
        return TransportResult(
            error=value.error,
            status_code=value.status_code,
            document_text=value.document_text,
            details=normalize_details(value.details),
        )
    if isinstance(value, Mapping):
        text = value.get("document_text", value.get("documentText", value.get("xml")))
        status = value.get("status_code", value.get("statusCode"))
        return TransportResult(
            error=value.get("error"),
            status_code=status,
            document_text=text,
            details=normalize_details(value.get("details")),
        )
    raise TypeError(f"transport returned {type(value).__name__}, expected TransportResult or mapping")


@runtime_checkable
class URLHandler(Protocol):
    """Anything with an async ``get``; must report ordinary failures via ``error``."""

    async def get(self, url: str, options: FetchOptions) -> Any:
        ...


class AiohttpURLHandler:
    """Default transport: one aiohttp session per request.

    Cookies are only kept (and sent back) when ``send_credentials`` is set;
    the jar lives on the handler so it survives across wrapper hops.
    """

    def __init__(self, headers: Optional[Dict[str, str]] = None) -> None:
        self.headers: Dict[str, str] = {HDR_ACCEPT: ACCEPT_VAST}
        if headers:
            self.headers.update(headers)
        self._cookie_jar: Optional[aiohttp.CookieJar] = None

    def _jar(self, send_credentials: bool) -> AbstractCookieJar:
        if not send_credentials:
            return aiohttp.DummyCookieJar()
        if self._cookie_jar is None:
            self._cookie_jar = aiohttp.CookieJar(unsafe=True)
        return self._cookie_jar

    async def get(self, url: str, options: FetchOptions) -> TransportResult:
        scheme = (urlparse(url).scheme or "").lower()
        if scheme not in SUPPORTED_SCHEMES:
            message = f"URLHandler: Unsupported protocol '{scheme or '(none)'}' for {url}"
            logger.warning("%s", message)
            return TransportResult(error=TransportError(message))

        timeout = aiohttp.ClientTimeout(total=options.timeout_ms / 1000)
        start = time.perf_counter()
        try:
            async with aiohttp.ClientSession(
                timeout=timeout,
                headers=self.headers,
                cookie_jar=self._jar(options.send_credentials),
            ) as session:
                async with session.get(url) as resp:
                    status = resp.status
                    reason = resp.reason or ""
                    charset = resp.charset or "utf-8"
                    raw_bytes = await resp.read()
        except asyncio.TimeoutError:
            message = f"URLHandler: Request timed out after {options.timeout_ms} ms (408)"
            logger.warning("%s: %s", message, url)
            return TransportResult(error=TransportError(message, status_code=408), status_code=408)
        except aiohttp.ClientError as exc:
            message = f"URLHandler: {exc}"
            logger.warning("%s: %s", message, url)
            return TransportResult(error=TransportError(message))

        elapsed_ms = int(round((time.perf_counter() - start) * 1000))
        if not 200 <= status < 300:
            message = f"URLHandler: {reason} ({status})"
            logger.warning("%s: %s", message, url)
            return TransportResult(error=TransportError(message, status_code=status), status_code=status)

        try:
            text = raw_bytes.decode(charset, "replace")
        except LookupError:
            text = raw_bytes.decode("utf-8", "replace")
        return TransportResult(
            status_code=status,
            document_text=text,
            details={
                K_BYTE_LENGTH: len(raw_bytes),
                K_STATUS_CODE: status,
                K_REQUEST_DURATION_MS: elapsed_ms,
            },
        )


__all__ = [
    "TransportError",
    "FetchOptions",
    "TransportResult",
    "normalize_details",
    "coerce_transport_result",
    "URLHandler",
    "AiohttpURLHandler",
]
