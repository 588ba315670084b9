"""Environment-driven configuration for the caption server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_BUCKET = "vision-images"
DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
DEFAULT_UPLOAD_TTL_SECONDS = 2 * 60 * 60


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Server settings read from the process environment.

    Attributes:
        database_dir: Directory holding the SQLite file.
        database_reset: Delete and recreate the database on startup.
        storage_dir: Root directory for object storage buckets.
        bucket: Name of the single frame bucket.
        public_base_url: Base URL clients use to reach this server.
        upload_ttl_seconds: Lifetime of a signed upload slot.
        max_upload_bytes: Per-object size cap enforced on upload.
        openai_model: Default inference model id.
        inline_images: Send frames to the model as data URLs instead of public URLs.
    """

    database_dir: Path
    database_reset: bool
    storage_dir: Path
    bucket: str
    public_base_url: str
    upload_ttl_seconds: int
    max_upload_bytes: int
    openai_model: str
    inline_images: bool

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables with local defaults."""
        return cls(
            database_dir=Path(os.getenv("DATABASE_DIR") or BASE_DIR / "database").expanduser(),
            database_reset=_env_flag("DATABASE_RESET", False),
            storage_dir=Path(os.getenv("STORAGE_DIR") or BASE_DIR / "storage").expanduser(),
            bucket=os.getenv("STORAGE_BUCKET", DEFAULT_BUCKET),
            public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
            upload_ttl_seconds=int(os.getenv("UPLOAD_URL_TTL_SECONDS", str(DEFAULT_UPLOAD_TTL_SECONDS))),
            max_upload_bytes=int(os.getenv("UPLOAD_MAX_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES))),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            inline_images=_env_flag("INLINE_IMAGES", True),
        )
