"""FastAPI routes for signed frame uploads."""

from fastapi import APIRouter, HTTPException, Query, Request

from controllers.upload_controller import create_signed_upload
from services.object_storage import (
    UPLOAD_PREFIX,
    LocalObjectStorage,
    ObjectTooLargeError,
    StorageError,
    UploadTokenError,
)

router = APIRouter()


@router.get("/api/signed-upload", summary="Provision a signed upload slot for one frame")
async def signed_upload(request: Request):
    """Return `{uploadUrl, path, getUrl}` for a fresh `frames/` object."""
    try:
        return await create_signed_upload(request)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.put(UPLOAD_PREFIX + "/{bucket}/{path:path}", include_in_schema=False)
async def upload_object(request: Request, bucket: str, path: str, token: str = Query(...)):
    """Accept the raw frame bytes for a previously signed upload slot."""
    storage: LocalObjectStorage = request.app.state.storage
    data = await request.body()
    try:
        key = await storage.upload_with_token(bucket, path, token, data)
    except UploadTokenError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except ObjectTooLargeError as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from exc
    except StorageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return {"Key": key}
