"""In-process publish/subscribe hub for per-session caption topics."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Set

LOGGER = logging.getLogger(__name__)

CAPTION_EVENT = "caption"


def session_topic(session_id: str) -> str:
	"""Return the broadcast topic name for a session."""
	return f"session:{session_id}"


class Subscription:
	"""One subscriber's view of a topic; iterate it to receive messages."""

	def __init__(self, hub: "BroadcastHub", topic: str) -> None:
		self.hub = hub
		self.topic = topic
		self.queue: asyncio.Queue = asyncio.Queue()
		self.closed = False

	def deliver(self, message: Dict[str, Any]) -> None:
		if not self.closed:
			self.queue.put_nowait(message)

	async def get(self) -> Dict[str, Any]:
		"""Wait for the next message on this topic."""
		return await self.queue.get()

	def __aiter__(self) -> "Subscription":
		return self

	async def __anext__(self) -> Dict[str, Any]:
		if self.closed and self.queue.empty():
			raise StopAsyncIteration
		return await self.get()

	def close(self) -> None:
		"""Stop receiving messages and detach from the hub."""
		if self.closed:
			return
		self.closed = True
		self.hub._remove(self)


class BroadcastHub:
	"""Manage topic subscriptions and fan out published events.

	Delivery is per topic and in publish order for each subscriber; there
	is no ordering across topics and no replay for late subscribers.
	"""

	def __init__(self) -> None:
		self._topics: Dict[str, Set[Subscription]] = {}

	def subscribe(self, topic: str) -> Subscription:
		"""Register a new subscription to `topic`."""
		subscription = Subscription(self, topic)
		self._topics.setdefault(topic, set()).add(subscription)
		LOGGER.info("Subscribed to %s. Subscribers on topic: %d", topic, len(self._topics[topic]))
		return subscription

	async def publish(self, topic: str, event: str, payload: Dict[str, Any]) -> int:
		"""Deliver `payload` as `event` to every current subscriber of `topic`.

		Returns:
			Number of subscribers the message was delivered to.
		"""
		message = {"type": "broadcast", "event": event, "payload": payload}
		subscribers = list(self._topics.get(topic, ()))
		for subscription in subscribers:
			subscription.deliver(message)
		LOGGER.debug("Published %s on %s to %d subscribers", event, topic, len(subscribers))
		return len(subscribers)

	def subscriber_count(self, topic: str) -> int:
		return len(self._topics.get(topic, ()))

	def _remove(self, subscription: Subscription) -> None:
		subscribers = self._topics.get(subscription.topic)
		if subscribers is None:
			return
		subscribers.discard(subscription)
		if not subscribers:
			del self._topics[subscription.topic]
		LOGGER.info("Unsubscribed from %s", subscription.topic)
