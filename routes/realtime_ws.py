"""WebSocket endpoint bridging clients to broadcast topics."""

from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter, Depends, HTTPException, WebSocket
from starlette.websockets import WebSocketDisconnect

from services.realtime.broadcast import BroadcastHub, Subscription

router = APIRouter()

TOPIC_PREFIX = "session:"


def _require_hub(websocket: WebSocket) -> BroadcastHub:
	hub = getattr(websocket.app.state, "broadcast_hub", None)
	if hub is None:
		raise HTTPException(status_code=500, detail="Broadcast hub unavailable")
	return hub


async def _pump(websocket: WebSocket, subscription: Subscription) -> None:
	async for message in subscription:
		await websocket.send_text(json.dumps(message))


async def _drain(websocket: WebSocket) -> None:
	# Inbound frames carry nothing; reading them is how a disconnect is noticed.
	while True:
		message = await websocket.receive()
		if message["type"] == "websocket.disconnect":
			return


@router.websocket("/realtime/{topic}")
async def realtime_socket(websocket: WebSocket, topic: str, hub: BroadcastHub = Depends(_require_hub)):
	"""Subscribe one websocket to a session topic until it disconnects."""
	await websocket.accept()
	if not topic.startswith(TOPIC_PREFIX) or not topic[len(TOPIC_PREFIX):]:
		await websocket.send_text(
			json.dumps({"type": "system", "status": "CHANNEL_ERROR", "topic": topic, "detail": "Unknown topic"})
		)
		await websocket.close()
		return

	subscription = hub.subscribe(topic)
	try:
		await websocket.send_text(json.dumps({"type": "system", "status": "SUBSCRIBED", "topic": topic}))
		tasks = [asyncio.create_task(_pump(websocket, subscription)), asyncio.create_task(_drain(websocket))]
		done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
		for task in pending:
			task.cancel()
		await asyncio.gather(*pending, return_exceptions=True)
		for task in done:
			exc = task.exception()
			if exc is not None:
				raise exc
	except WebSocketDisconnect:
		pass
	finally:
		subscription.close()
