"""
Unit tests for the HTTP client, served by an in-memory httpx transport.
"""
import json
from datetime import datetime, timezone

import httpx
import pytest

from capture_client.api_client import (
    CaptionApiClient,
    CaptionRequestError,
    HistoryError,
    UploadSlotError,
)

BASE_URL = "http://captions.test"


def _client(handler, **kwargs) -> CaptionApiClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CaptionApiClient(BASE_URL, http, **kwargs)


class TestUploadSlot:
    @pytest.mark.asyncio
    async def test_slot_parsed(self):
        def handler(request):
            assert request.url.path == "/api/signed-upload"
            return httpx.Response(200, json={"uploadUrl": "http://u", "path": "frames/a.jpg", "getUrl": "http://g"})

        slot = await _client(handler).request_upload_slot()
        assert (slot.upload_url, slot.path, slot.get_url) == ("http://u", "frames/a.jpg", "http://g")

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        api = _client(lambda request: httpx.Response(500, json={"detail": "bucket missing"}))
        with pytest.raises(UploadSlotError, match="bucket missing"):
            await api.request_upload_slot()


class TestTransfer:
    @pytest.mark.asyncio
    async def test_put_bytes(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = request.content
            seen["type"] = request.headers["content-type"]
            return httpx.Response(200, json={"path": "frames/a.jpg"})

        assert await _client(handler).transfer("http://storage.test/upload?token=t", b"jpeg") is True
        assert seen == {"method": "PUT", "body": b"jpeg", "type": "image/jpeg"}

    @pytest.mark.asyncio
    async def test_rejected_transfer_returns_false(self):
        api = _client(lambda request: httpx.Response(403, json={"detail": "expired"}))
        assert await api.transfer("http://storage.test/upload?token=t", b"jpeg") is False

    @pytest.mark.asyncio
    async def test_network_error_returns_false(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert await _client(handler).transfer("http://storage.test/upload", b"jpeg") is False


class TestSubmitCaption:
    @pytest.mark.asyncio
    async def test_sticky_selection_and_override(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "id": "c1"})

        api = _client(handler, model="fast", prompt="DETAILED")
        captured = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        await api.submit_caption("frames/a.jpg", "s1", timestamp=captured, request_id="r1")
        await api.submit_caption("frames/b.jpg", "s1", model="detailed")

        assert bodies[0] == {
            "path": "frames/a.jpg",
            "session": "s1",
            "timestamp": "2024-05-01T12:00:00+00:00",
            "requestId": "r1",
            "model": "fast",
            "prompt": "DETAILED",
        }
        assert bodies[1]["model"] == "detailed"
        assert bodies[1]["prompt"] == "DETAILED"

    @pytest.mark.asyncio
    async def test_error_message_surfaced(self):
        api = _client(lambda request: httpx.Response(500, json={"detail": "model overloaded"}))
        with pytest.raises(CaptionRequestError, match="model overloaded"):
            await api.submit_caption("frames/a.jpg", "s1")


class TestHistory:
    @pytest.mark.asyncio
    async def test_query_and_page(self):
        def handler(request):
            assert dict(request.url.params) == {"session": "s1", "limit": "5", "cursor": "c9"}
            return httpx.Response(200, json={"captions": [{"id": "c8"}], "nextCursor": "c8"})

        page = await _client(handler).list_history("s1", cursor="c9", limit=5)
        assert page.captions == [{"id": "c8"}]
        assert page.next_cursor == "c8"

    @pytest.mark.asyncio
    async def test_failure_raises(self):
        api = _client(lambda request: httpx.Response(400, json={"error": "Invalid request data"}))
        with pytest.raises(HistoryError, match="Invalid request data"):
            await api.list_history("s1")
