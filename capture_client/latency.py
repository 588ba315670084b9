"""End-to-end timing from frame submission to realtime delivery."""

from __future__ import annotations

import logging
import time
from typing import Dict, Optional

LOGGER = logging.getLogger(__name__)


class LatencyTracker:
    """Remember when each request id started and report when its caption arrives."""

    def __init__(self, max_pending: int = 256) -> None:
        self.max_pending = max_pending
        self._started: Dict[str, float] = {}

    def start(self, request_id: str) -> None:
        if len(self._started) >= self.max_pending:
            # Oldest entries belong to frames whose captions never arrived.
            self._started.pop(next(iter(self._started)))
        self._started[request_id] = time.monotonic()

    def complete(self, request_id: str) -> Optional[float]:
        """Return and log elapsed milliseconds, or None for unknown ids."""
        started = self._started.pop(request_id, None)
        if started is None:
            return None
        elapsed_ms = (time.monotonic() - started) * 1000
        LOGGER.info("[%s] Total end-to-end time: %.0fms", request_id, elapsed_ms)
        return elapsed_ms
