"""
Unit tests for the frame -> upload -> caption pipeline.
"""
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from capture_client.api_client import CaptionRequestError, UploadSlot, UploadSlotError
from capture_client.capture import EncodedFrame
from capture_client.latency import LatencyTracker
from capture_client.pipeline import CaptionPipeline

CAPTURED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def frame():
    return EncodedFrame(data=b"\xff\xd8jpeg", captured_at=CAPTURED_AT, width=1280, height=720)


@pytest.fixture
def api():
    mock = AsyncMock()
    mock.request_upload_slot.return_value = UploadSlot(
        upload_url="http://test/upload?token=t", path="frames/a.jpg", get_url="http://test/a.jpg"
    )
    mock.transfer.return_value = True
    mock.submit_caption.return_value = {"success": True, "id": "c1", "processingTime": 12}
    return mock


class TestCaptionPipeline:
    @pytest.mark.asyncio
    async def test_successful_frame(self, api, frame):
        latency = LatencyTracker()
        result = await CaptionPipeline(api, "s1", latency).process_frame(frame)

        assert result["id"] == "c1"
        api.transfer.assert_awaited_once_with("http://test/upload?token=t", frame.data)
        kwargs = api.submit_caption.await_args.kwargs
        assert api.submit_caption.await_args.args == ("frames/a.jpg", "s1")
        assert kwargs["timestamp"] == CAPTURED_AT
        assert latency.complete(kwargs["request_id"]) is not None

    @pytest.mark.asyncio
    async def test_failed_transfer_skips_caption(self, api, frame):
        api.transfer.return_value = False
        assert await CaptionPipeline(api, "s1").process_frame(frame) is None
        api.submit_caption.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_slot_failure_drops_frame(self, api, frame):
        api.request_upload_slot.side_effect = UploadSlotError("Failed to get upload URL")
        assert await CaptionPipeline(api, "s1").process_frame(frame) is None
        api.transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_caption_failure_drops_frame(self, api, frame):
        api.submit_caption.side_effect = CaptionRequestError("Failed to generate caption: 500")
        assert await CaptionPipeline(api, "s1").process_frame(frame) is None

    @pytest.mark.asyncio
    async def test_submit_runs_in_background(self, api, frame):
        pipeline = CaptionPipeline(api, "s1")
        task = pipeline.submit(frame)
        assert (await task)["id"] == "c1"

    @pytest.mark.asyncio
    async def test_run_submits_every_frame_and_closes_source(self, api, frame):
        class Source:
            closed = False

            async def frames(self, is_active):
                for _ in range(3):
                    yield frame

            async def close(self):
                Source.closed = True

        await CaptionPipeline(api, "s1").run(Source())

        assert api.submit_caption.await_count == 3
        assert Source.closed
