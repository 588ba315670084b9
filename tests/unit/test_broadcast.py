"""
Unit tests for the in-process broadcast hub.
"""
import pytest

from services.realtime.broadcast import BroadcastHub, session_topic


class TestBroadcastHub:
    @pytest.mark.asyncio
    async def test_publish_reaches_only_topic_subscribers(self):
        hub = BroadcastHub()
        s1 = hub.subscribe(session_topic("s1"))
        s2 = hub.subscribe(session_topic("s2"))

        delivered = await hub.publish(session_topic("s1"), "caption", {"id": "c1"})

        assert delivered == 1
        message = await s1.get()
        assert message == {"type": "broadcast", "event": "caption", "payload": {"id": "c1"}}
        assert s2.queue.empty()

    @pytest.mark.asyncio
    async def test_order_preserved_per_topic(self):
        hub = BroadcastHub()
        sub = hub.subscribe("session:s1")
        for i in range(3):
            await hub.publish("session:s1", "caption", {"id": str(i)})
        ids = [(await sub.get())["payload"]["id"] for _ in range(3)]
        assert ids == ["0", "1", "2"]

    @pytest.mark.asyncio
    async def test_closed_subscription_stops_receiving(self):
        hub = BroadcastHub()
        sub = hub.subscribe("session:s1")
        sub.close()
        sub.close()
        assert hub.subscriber_count("session:s1") == 0
        assert await hub.publish("session:s1", "caption", {"id": "c1"}) == 0
        assert sub.queue.empty()

    def test_session_topic_name(self):
        assert session_topic("abc") == "session:abc"
