from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from controllers.history_controller import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, list_history

router = APIRouter(prefix="/api")


@router.get("/history")
async def get_history(
    request: Request,
    session: str = Query(..., min_length=1),
    cursor: Optional[str] = None,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    """Return a session's captions newest first with a pagination cursor."""
    try:
        return await list_history(request, session, cursor=cursor, limit=limit)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
