"""Session domain models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SessionRecord:
	"""Row of the SESSION table; a session carries no attributes beyond its id."""

	id: str
	created_at: str
