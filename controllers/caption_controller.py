import base64
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Request

from dal.caption_dal import CaptionDAL
from dal.session_dal import SessionDAL
from models.caption_record import CaptionRecord
from services.caption_formatter import format_caption
from services.inference.prompts import resolve_settings
from services.inference.vlm_captioner import VlmCaptioner
from services.object_storage import LocalObjectStorage
from services.realtime.broadcast import CAPTION_EVENT, BroadcastHub, session_topic
from utils.settings import Settings
from utils.time_utils import format_timestamp

LOGGER = logging.getLogger(__name__)


async def _image_input(storage: LocalObjectStorage, settings: Settings, path: str, image_url: str) -> str:
    """Return the image reference handed to the model."""
    if not settings.inline_images:
        return image_url
    image_bytes = await storage.read_object(settings.bucket, path)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:image/jpeg;base64,{encoded}"


async def create_caption(
    request: Request,
    path: str,
    session_id: str,
    timestamp: Optional[datetime] = None,
    request_id: Optional[str] = None,
    model: Optional[str] = None,
    prompt: Optional[str] = None,
) -> Dict[str, Any]:
    """Caption an uploaded frame, persist it, and broadcast it to the session.

    Steps run in order and are not transactional: a caption persisted
    before a failed broadcast stays persisted.

    Args:
        request: FastAPI Request (used to access app.state for shared clients).
        path: Storage-relative path returned by the signed-upload endpoint.
        session_id: Client session the caption belongs to.
        timestamp: Capture time; the server clock is used when absent.
        request_id: Optional correlation id echoed in the broadcast.
        model: Optional model alias or id for this request only.
        prompt: Optional prompt preset name or literal prompt for this request only.

    Returns:
        A dict with the formatted caption and its metadata.
    """
    start = time.time()
    state = request.app.state
    settings: Settings = state.settings
    storage: LocalObjectStorage = state.storage
    hub: BroadcastHub = state.broadcast_hub

    captured_at = format_timestamp(timestamp)
    image_url = storage.public_url(settings.bucket, path)
    inference = resolve_settings(model, prompt, settings.openai_model)

    captioner = VlmCaptioner(state.openai_client)
    image_input = await _image_input(storage, settings, path, image_url)
    result = await captioner.caption(image_input, inference)
    raw_caption = result["text"]
    formatted = format_caption(raw_caption)

    caption_id = str(uuid.uuid4())

    if await SessionDAL(state.db_initializer).ensure_session(session_id):
        LOGGER.info("Created new session: %s", session_id)

    record = CaptionRecord(
        id=caption_id,
        session_id=session_id,
        timestamp=captured_at,
        image_path=path,
        image_url=image_url,
        caption=formatted.text,
        thoughts=formatted.thoughts,
        observations=formatted.observations,
        raw_caption=raw_caption,
        model=inference.model,
        prompt=inference.prompt,
    )
    await CaptionDAL(state.db_initializer).create_caption(record)

    payload: Dict[str, Any] = {
        "id": caption_id,
        "caption": formatted.text,
        "thoughts": formatted.thoughts,
        "observations": formatted.observations,
        "imageUrl": image_url,
        "timestamp": captured_at,
    }
    if request_id:
        payload["requestId"] = request_id
    delivered = await hub.publish(session_topic(session_id), CAPTION_EVENT, payload)
    LOGGER.info("[%s] Caption %s broadcast to %d subscribers", request_id or "-", caption_id, delivered)

    response: Dict[str, Any] = {
        "success": True,
        "caption": formatted.text,
        "rawCaption": raw_caption,
        "thoughts": formatted.thoughts,
        "observations": formatted.observations,
        "imageUrl": image_url,
        "id": caption_id,
        "processingTime": int((time.time() - start) * 1000),
    }
    if request_id:
        response["requestId"] = request_id
    return response
