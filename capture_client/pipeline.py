"""Frame -> upload -> caption request orchestration."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, Dict, Optional, Set

from capture_client.api_client import CaptionApiClient
from capture_client.capture import CaptureSource, EncodedFrame
from capture_client.latency import LatencyTracker

LOGGER = logging.getLogger(__name__)


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class CaptionPipeline:
    """Push captured frames through upload and captioning.

    A failure at any step drops only that frame; the capture loop keeps
    its own schedule. The HTTP response is not used to update the feed:
    captions reach viewers through the realtime subscription.
    """

    def __init__(
        self,
        api: CaptionApiClient,
        session_id: str,
        latency: Optional[LatencyTracker] = None,
    ) -> None:
        self.api = api
        self.session_id = session_id
        self.latency = latency
        self._in_flight: Set[asyncio.Task] = set()

    async def process_frame(self, frame: EncodedFrame) -> Optional[Dict[str, Any]]:
        """Upload one frame and request its caption.

        Returns:
            The caption response, or None if the frame was dropped.
        """
        request_id = new_request_id()
        start = time.monotonic()
        LOGGER.info("[%s] Pipeline started", request_id)
        try:
            slot = await self.api.request_upload_slot()
            if not await self.api.transfer(slot.upload_url, frame.data):
                LOGGER.warning("[%s] Upload failed; frame dropped", request_id)
                return None
            if self.latency is not None:
                self.latency.start(request_id)
            result = await self.api.submit_caption(
                slot.path, self.session_id, timestamp=frame.captured_at, request_id=request_id
            )
        except Exception as exc:
            LOGGER.error("[%s] Error processing frame: %s", request_id, exc)
            return None
        LOGGER.info(
            "[%s] Caption API answered in %.0fms (server %sms)",
            request_id,
            (time.monotonic() - start) * 1000,
            result.get("processingTime"),
        )
        return result

    def submit(self, frame: EncodedFrame) -> asyncio.Task:
        """Process a frame in the background so capture is never blocked."""
        task = asyncio.create_task(self.process_frame(frame))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def run(self, source: CaptureSource, is_active: Callable[[], bool] = lambda: True) -> None:
        """Feed every frame from `source` into the pipeline until it stops."""
        try:
            async for frame in source.frames(is_active):
                self.submit(frame)
        finally:
            await source.close()
            if self._in_flight:
                await asyncio.gather(*self._in_flight, return_exceptions=True)
