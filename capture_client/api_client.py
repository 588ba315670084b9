"""HTTP client for the caption server: upload slots, transfers, captions and history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0


class UploadSlotError(RuntimeError):
    """The server could not provision an upload slot."""


class CaptionRequestError(RuntimeError):
    """The caption endpoint rejected the request or failed."""


class HistoryError(RuntimeError):
    """The history endpoint could not be read."""


@dataclass
class UploadSlot:
    upload_url: str
    path: str
    get_url: str


@dataclass
class HistoryPage:
    captions: List[Dict[str, Any]]
    next_cursor: Optional[str]


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"{response.status_code} {response.reason_phrase}"
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)


class CaptionApiClient:
    """Async client for the caption server.

    Args:
        base_url: Server root, e.g. `http://localhost:8000`.
        client: Optional preconfigured `httpx.AsyncClient`; one is created otherwise.
        model: Sticky model selection sent with every caption request.
        prompt: Sticky prompt preset name or literal prompt.
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        *,
        model: Optional[str] = None,
        prompt: Optional[str] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=DEFAULT_TIMEOUT)
        self.model = model
        self.prompt = prompt

    async def request_upload_slot(self) -> UploadSlot:
        """Ask the server for a single-use upload location."""
        try:
            response = await self._client.get(f"{self.base_url}/api/signed-upload")
        except httpx.HTTPError as exc:
            raise UploadSlotError(f"Failed to get upload URL: {exc}") from exc
        if response.status_code != 200:
            raise UploadSlotError(f"Failed to get upload URL: {_error_message(response)}")
        body = response.json()
        return UploadSlot(upload_url=body["uploadUrl"], path=body["path"], get_url=body["getUrl"])

    async def transfer(self, upload_url: str, data: bytes) -> bool:
        """PUT the image bytes to a signed upload URL. Returns False on any failure."""
        try:
            response = await self._client.put(upload_url, content=data, headers={"Content-Type": "image/jpeg"})
        except httpx.HTTPError as exc:
            LOGGER.error("Failed to upload image: %s", exc)
            return False
        if not response.is_success:
            LOGGER.error("Failed to upload image: %s", _error_message(response))
            return False
        return True

    async def submit_caption(
        self,
        path: str,
        session_id: str,
        *,
        timestamp: Optional[datetime] = None,
        request_id: Optional[str] = None,
        model: Optional[str] = None,
        prompt: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Request a caption for an uploaded frame.

        Model and prompt default to the client's sticky selection.

        Raises:
            CaptionRequestError: On transport failure or a non-200 response.
        """
        body: Dict[str, Any] = {"path": path, "session": session_id}
        if timestamp is not None:
            body["timestamp"] = timestamp.isoformat()
        if request_id:
            body["requestId"] = request_id
        model = model or self.model
        prompt = prompt or self.prompt
        if model:
            body["model"] = model
        if prompt:
            body["prompt"] = prompt
        try:
            response = await self._client.post(f"{self.base_url}/api/caption", json=body)
        except httpx.HTTPError as exc:
            raise CaptionRequestError(f"Failed to generate caption: {exc}") from exc
        if response.status_code != 200:
            raise CaptionRequestError(f"Failed to generate caption: {_error_message(response)}")
        return response.json()

    async def list_history(self, session_id: str, cursor: Optional[str] = None, limit: int = 20) -> HistoryPage:
        """Fetch one newest-first page of a session's captions."""
        params: Dict[str, Any] = {"session": session_id, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        try:
            response = await self._client.get(f"{self.base_url}/api/history", params=params)
        except httpx.HTTPError as exc:
            raise HistoryError(f"Failed to fetch history: {exc}") from exc
        if response.status_code != 200:
            raise HistoryError(f"Failed to fetch history: {_error_message(response)}")
        body = response.json()
        return HistoryPage(captions=list(body.get("captions") or []), next_cursor=body.get("nextCursor"))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
