"""Running estimate of network throughput across VAST fetches."""

from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class BitrateEstimator:
    """Running mean of observed bitrates, in kbit/s.

    Share one instance between fetchers to share the estimate. Samples with a
    missing or zero byte length or duration carry no information and are
    skipped.
    """

    def __init__(self) -> None:
        self.estimated_bitrate: float = 0.0
        self.count: int = 0

    def update(self, byte_length: Optional[int], duration_ms: Optional[int]) -> None:
        if not byte_length or not duration_ms:
            return
        # bytes per millisecond * 8 == kbit/s
        bitrate = (byte_length * 8) / duration_ms
        self.count += 1
        self.estimated_bitrate = (self.estimated_bitrate * (self.count - 1) + bitrate) / self.count
        logger.debug(
            "bitrate sample %.2f kbit/s (%d bytes in %d ms), estimate %.2f over %d samples",
            bitrate,
            byte_length,
            duration_ms,
            self.estimated_bitrate,
            self.count,
        )

    def reset(self) -> None:
        self.estimated_bitrate = 0.0
        self.count = 0


__all__ = ["BitrateEstimator"]
