"""FastAPI route for captioning an uploaded frame."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from controllers.caption_controller import create_caption

router = APIRouter(prefix="/api")


class CaptionPayload(BaseModel):
    path: str = Field(min_length=1)
    session: str = Field(min_length=1)
    timestamp: Optional[datetime] = None
    requestId: Optional[str] = None
    model: Optional[str] = None
    prompt: Optional[str] = None


@router.post("/caption")
async def post_caption(request: Request, payload: CaptionPayload):
    """Caption the frame at `path` for `session` and broadcast the result."""
    try:
        return await create_caption(
            request,
            path=payload.path,
            session_id=payload.session,
            timestamp=payload.timestamp,
            request_id=payload.requestId,
            model=payload.model,
            prompt=payload.prompt,
        )
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
