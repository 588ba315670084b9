from typing import Any, Dict, Optional

from fastapi import Request

from dal.caption_dal import CaptionDAL

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


async def list_history(
    request: Request, session_id: str, cursor: Optional[str] = None, limit: int = DEFAULT_PAGE_SIZE
) -> Dict[str, Any]:
    """Return one newest-first page of a session's captions.

    One extra row is fetched to tell a full last page from a page with
    more data behind it: `nextCursor` is the id of the last returned
    caption only when further rows exist, otherwise None. A blank cursor
    reads the first page.
    """
    cursor = cursor.strip() if cursor else None
    rows = await CaptionDAL(request.app.state.db_initializer).list_captions(
        session_id, limit=limit + 1, cursor=cursor or None
    )
    captions = rows[:limit]
    next_cursor = captions[-1].id if len(rows) > limit else None
    return {"captions": [c.to_api() for c in captions], "nextCursor": next_cursor}
