"""Keep a caption feed in sync with a session's broadcast topic.

The subscriber moves through `uninitialized -> loading -> ready | error`.
Loading fetches one history page and opens the topic subscription
concurrently; afterwards each broadcast caption is merged into the feed
by id, so redelivered events are harmless.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, Optional, Protocol
from urllib.parse import quote

import websockets

from capture_client.api_client import CaptionApiClient
from capture_client.caption_feed import CaptionFeed
from capture_client.latency import LatencyTracker

LOGGER = logging.getLogger(__name__)

SUBSCRIBED = "SUBSCRIBED"
CAPTION_EVENT = "caption"
HISTORY_PAGE_SIZE = 20


def session_topic(session_id: str) -> str:
    return f"session:{session_id}"


class SubscriberState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class Transport(Protocol):
    async def subscribe(self, topic: str) -> str: ...

    def messages(self) -> AsyncIterator[Dict[str, Any]]: ...

    async def close(self) -> None: ...


class WebsocketTransport:
    """Websocket connection to the server's `/realtime/{topic}` endpoint."""

    def __init__(self, base_url: str) -> None:
        base = base_url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://"):]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://"):]
        self.base_url = base
        self._conn = None

    async def subscribe(self, topic: str) -> str:
        """Connect and return the status acknowledged by the server."""
        self._conn = await websockets.connect(f"{self.base_url}/realtime/{quote(topic, safe=':')}")
        ack = json.loads(await self._conn.recv())
        return str(ack.get("status") or "CHANNEL_ERROR")

    async def messages(self) -> AsyncIterator[Dict[str, Any]]:
        if self._conn is None:
            return
        async for raw in self._conn:
            yield json.loads(raw)

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            await conn.close()


class RealtimeSubscriber:
    """Maintain the ordered caption feed for one session.

    Args:
        session_id: Session whose topic and history are followed.
        api: Client used for the history fetch.
        transport_factory: Builds a fresh transport for every subscription.
        page_size: Number of history captions used to seed the feed.
        on_new_caption: Called with each caption newly merged from the topic.
        latency: Optional tracker notified when a caption carries a known request id.
    """

    def __init__(
        self,
        session_id: str,
        api: CaptionApiClient,
        transport_factory: Callable[[], Transport],
        *,
        page_size: int = HISTORY_PAGE_SIZE,
        on_new_caption: Optional[Callable[[Dict[str, Any]], None]] = None,
        latency: Optional[LatencyTracker] = None,
    ) -> None:
        self.session_id = session_id
        self.api = api
        self.transport_factory = transport_factory
        self.page_size = page_size
        self.on_new_caption = on_new_caption
        self.latency = latency
        self.feed = CaptionFeed()
        self.state = SubscriberState.UNINITIALIZED
        self.error: Optional[str] = None
        self._transport: Optional[Transport] = None
        self._listener: Optional[asyncio.Task] = None

    @property
    def captions(self):
        return self.feed.captions

    async def start(self) -> SubscriberState:
        """Seed the feed from history and subscribe to the session topic.

        Any existing subscription is released first, so calling this again
        after an error reloads and resubscribes.
        """
        await self._release()
        if not self.session_id:
            return self.state
        self.state = SubscriberState.LOADING
        self.error = None
        self.feed = CaptionFeed()

        transport = self.transport_factory()
        self._transport = transport
        status, page = await asyncio.gather(
            transport.subscribe(session_topic(self.session_id)),
            self.api.list_history(self.session_id, limit=self.page_size),
            return_exceptions=True,
        )

        if isinstance(status, BaseException) or status != SUBSCRIBED:
            reason = status if isinstance(status, BaseException) else f"status {status}"
            LOGGER.error("Failed to subscribe to realtime updates: %s", reason)
            await self._fail(f"Failed to connect to realtime updates: {reason}")
            return self.state
        if isinstance(page, BaseException):
            LOGGER.error("Error fetching captions: %s", page)
            await self._fail(f"Failed to load captions: {page}")
            return self.state

        self.feed.load_history(page.captions)
        self._listener = asyncio.create_task(self._listen(transport))
        self.state = SubscriberState.READY
        LOGGER.info("Feed ready for session %s with %d captions", self.session_id, len(self.feed))
        return self.state

    def handle_event(self, payload: Dict[str, Any]) -> bool:
        """Merge one broadcast caption; returns False for duplicates."""
        request_id = payload.get("requestId")
        if request_id and self.latency is not None:
            self.latency.complete(request_id)
        if not self.feed.merge(payload):
            return False
        if self.on_new_caption is not None:
            self.on_new_caption(payload)
        return True

    async def _listen(self, transport: Transport) -> None:
        try:
            async for message in transport.messages():
                if message.get("type") == "broadcast" and message.get("event") == CAPTION_EVENT:
                    self.handle_event(message.get("payload") or {})
        except Exception as exc:
            LOGGER.error("Realtime subscription failed: %s", exc)
            self.state = SubscriberState.ERROR
            self.error = f"Realtime connection lost: {exc}"
        else:
            if self.state == SubscriberState.READY:
                self.state = SubscriberState.ERROR
                self.error = "Realtime connection closed"
        if self._transport is transport:
            self._transport = None
            self._listener = None
        await transport.close()

    async def _fail(self, message: str) -> None:
        self.state = SubscriberState.ERROR
        self.error = message
        await self._release()

    async def _release(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.close()

    async def switch_session(self, session_id: str) -> SubscriberState:
        """Release the current subscription, then load the new session."""
        await self._release()
        self.session_id = session_id
        return await self.start()

    async def close(self) -> None:
        """Release the subscription."""
        await self._release()
        self.state = SubscriberState.UNINITIALIZED
