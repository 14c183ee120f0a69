"""Shared event payload keys to avoid magic strings across fetcher modules."""

from __future__ import annotations

# Fields common to both lifecycle events
K_URL = "url"
K_PREVIOUS_URL = "previous_url"
K_WRAPPER_DEPTH = "wrapper_depth"

# VAST-resolving only
K_MAX_WRAPPER_DEPTH = "max_wrapper_depth"
K_TIMEOUT = "timeout"
K_WRAPPER_AD = "wrapper_ad"

# VAST-resolved only
K_ERROR = "error"
K_DURATION = "duration"
K_STATUS_CODE = "status_code"

# Transport details merged into VAST-resolved
K_BYTE_LENGTH = "byte_length"
K_REQUEST_DURATION_MS = "request_duration_ms"
