import logging
import uuid
from typing import Dict

from fastapi import Request

from services.object_storage import LocalObjectStorage
from utils.settings import Settings

LOGGER = logging.getLogger(__name__)

FRAME_PREFIX = "frames"


def new_frame_path() -> str:
    """Return a fresh storage path for one captured frame."""
    return f"{FRAME_PREFIX}/{uuid.uuid4()}.jpg"


async def create_signed_upload(request: Request) -> Dict[str, str]:
    """Provision one write-once upload slot for a frame.

    Ensures the frame bucket exists (public-read, size-capped) before
    issuing the slot. The read URL is composed from the base URL, bucket
    and path, so clients never need a follow-up lookup.

    Returns:
        A dict with `uploadUrl`, `path` and `getUrl`.
    """
    storage: LocalObjectStorage = request.app.state.storage
    settings: Settings = request.app.state.settings

    storage.ensure_bucket(settings.bucket, public=True, file_size_limit=settings.max_upload_bytes)

    path = new_frame_path()
    upload_url = storage.create_signed_upload_url(settings.bucket, path)
    LOGGER.info("Signed upload slot issued for %s", path)

    return {
        "uploadUrl": upload_url,
        "path": path,
        "getUrl": storage.public_url(settings.bucket, path),
    }
