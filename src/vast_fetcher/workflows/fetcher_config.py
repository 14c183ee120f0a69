"""Fetcher defaults (timeouts, event names, wrapper depth).

Centralizes static defaults so fetcher.py has no embedded magic numbers.
Each value can be overridden through the environment (or a ``.env`` file);
callers can still pass their own values to ``VASTFetcher.set_options``.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv(override=True)


def _env_int(name: str, default: int = 0) -> int:
    try:
        raw = os.getenv(name, "")
        return int(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


# Event names
EVENT_RESOLVING = "VAST-resolving"
EVENT_RESOLVED = "VAST-resolved"

# Policy defaults
DEFAULT_TIMEOUT_MS = max(1, _env_int("VAST_FETCHER_DEFAULT_TIMEOUT_MS", 120000))
DEFAULT_MAX_WRAPPER_DEPTH = max(0, _env_int("VAST_FETCHER_MAX_WRAPPER_DEPTH", 10))
DEFAULT_LOG_LEVEL = (os.getenv("VAST_FETCHER_LOG_LEVEL", "WARNING") or "WARNING").strip().upper()

# Transport
SUPPORTED_SCHEMES = ("http", "https")
HDR_ACCEPT = "Accept"
ACCEPT_VAST = "application/xml, text/xml;q=0.9, */*;q=0.8"
