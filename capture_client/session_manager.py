"""Stable per-install session identifier."""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)

SESSION_KEY = "vision-session-id"
DEFAULT_SESSION_FILE = Path.home() / ".vision-captions" / "session.json"


class SessionManager:
    """Read or create the session id persisted on this machine.

    Args:
        path: JSON file holding the id. Defaults to `VISION_SESSION_FILE`
            or `~/.vision-captions/session.json`.
    """

    def __init__(self, path: Optional[Path | str] = None) -> None:
        self.path = Path(path or os.getenv("VISION_SESSION_FILE") or DEFAULT_SESSION_FILE).expanduser()

    def _read(self) -> Optional[str]:
        if not self.path.is_file():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return None
        value = data.get(SESSION_KEY) if isinstance(data, dict) else None
        return value if isinstance(value, str) and value else None

    def get_or_create_session_id(self) -> str:
        """Return the persisted session id, creating and saving one if absent."""
        existing = self._read()
        if existing:
            return existing
        session_id = uuid.uuid4().hex
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({SESSION_KEY: session_id}), encoding="utf-8")
        LOGGER.info("Created new session %s", session_id)
        return session_id
