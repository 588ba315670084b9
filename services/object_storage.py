"""Local object storage with signed, single-use upload slots.

Buckets are directories under a storage root. Uploads go through a
signed URL whose token is valid for one write before it expires; reads
are public and served from the `/storage/v1/object/public` static mount,
so a readable URL is always `<base>/storage/v1/object/public/<bucket>/<path>`.
"""

from __future__ import annotations

import asyncio
import io
import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Dict, Optional
from urllib.parse import quote

import aiofiles
from PIL import Image

LOGGER = logging.getLogger(__name__)

PUBLIC_PREFIX = "/storage/v1/object/public"
UPLOAD_PREFIX = "/storage/v1/object/upload/sign"


class StorageError(Exception):
    """Base class for object storage failures."""


class UploadTokenError(StorageError):
    """The upload token is unknown, already used, expired, or for another object."""


class ObjectTooLargeError(StorageError):
    """The uploaded object exceeds the bucket's size limit."""


class InvalidObjectError(StorageError):
    """The uploaded bytes are empty or not a decodable image."""


@dataclass
class BucketConfig:
    name: str
    public: bool
    file_size_limit: Optional[int]


@dataclass
class _PendingUpload:
    bucket: str
    path: str
    expires_at: float


def _verify_image(data: bytes) -> None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except Exception as exc:
        raise InvalidObjectError("Uploaded bytes are not a supported image format") from exc


class LocalObjectStorage:
    """Filesystem-backed stand-in for a hosted storage bucket service.

    Args:
        root_dir: Directory under which each bucket gets a subdirectory.
        base_url: Public base URL of the server hosting the storage routes.
        upload_ttl_seconds: Lifetime of each signed upload URL.
    """

    def __init__(self, root_dir: Path | str, base_url: str, upload_ttl_seconds: int = 7200) -> None:
        self.root_dir = Path(root_dir).expanduser()
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        self.upload_ttl_seconds = upload_ttl_seconds
        self._buckets: Dict[str, BucketConfig] = {}
        self._pending: Dict[str, _PendingUpload] = {}

    def ensure_bucket(self, name: str, *, public: bool = True, file_size_limit: Optional[int] = None) -> bool:
        """Create the bucket if missing. Returns True when it was newly created."""
        if name in self._buckets:
            return False
        self._bucket_dir(name).mkdir(parents=True, exist_ok=True)
        self._buckets[name] = BucketConfig(name=name, public=public, file_size_limit=file_size_limit)
        LOGGER.info("Bucket %s ready (public=%s, limit=%s)", name, public, file_size_limit)
        return True

    def create_signed_upload_url(self, bucket: str, path: str) -> str:
        """Issue a single-use upload URL for `bucket/path`."""
        if bucket not in self._buckets:
            raise StorageError(f"Bucket {bucket} not found")
        self._object_path(bucket, path)
        self._expire_pending()
        token = secrets.token_urlsafe(24)
        self._pending[token] = _PendingUpload(
            bucket=bucket, path=path, expires_at=time.time() + self.upload_ttl_seconds
        )
        return f"{self.base_url}{UPLOAD_PREFIX}/{bucket}/{quote(path)}?token={token}"

    def public_url(self, bucket: str, path: str) -> str:
        """Return the public read URL; pure string composition."""
        return f"{self.base_url}{PUBLIC_PREFIX}/{bucket}/{path}"

    async def upload_with_token(self, bucket: str, path: str, token: str, data: bytes) -> str:
        """Write `data` through a signed upload slot and return the object key.

        Raises:
            UploadTokenError: Token unknown, consumed, expired, or mismatched.
            ObjectTooLargeError: Payload exceeds the bucket size limit.
            InvalidObjectError: Payload is empty or not an image.
        """
        pending = self._pending.pop(token, None)
        if pending is None or pending.expires_at < time.time():
            raise UploadTokenError("Upload token is invalid or expired")
        if pending.bucket != bucket or pending.path != path:
            raise UploadTokenError("Upload token does not match this object")

        config = self._buckets[bucket]
        if not data:
            raise InvalidObjectError("Uploaded object is empty")
        if config.file_size_limit is not None and len(data) > config.file_size_limit:
            raise ObjectTooLargeError(
                f"Object of {len(data)} bytes exceeds the {config.file_size_limit} byte limit"
            )
        await asyncio.to_thread(_verify_image, data)

        target = self._object_path(bucket, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(target, "wb") as f:
            await f.write(data)
        return f"{bucket}/{path}"

    async def read_object(self, bucket: str, path: str) -> bytes:
        """Return the stored bytes for `bucket/path`."""
        target = self._object_path(bucket, path)
        if not target.is_file():
            raise StorageError(f"Object {bucket}/{path} not found")
        async with aiofiles.open(target, "rb") as f:
            return await f.read()

    def _bucket_dir(self, bucket: str) -> Path:
        return self.root_dir / bucket

    def _object_path(self, bucket: str, path: str) -> Path:
        relative = PurePosixPath(path)
        if not path or relative.is_absolute() or ".." in relative.parts:
            raise StorageError(f"Invalid object path: {path!r}")
        return self._bucket_dir(bucket).joinpath(*relative.parts)

    def _expire_pending(self) -> None:
        now = time.time()
        for token in [t for t, p in self._pending.items() if p.expires_at < now]:
            del self._pending[token]
