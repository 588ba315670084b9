"""Ordered, duplicate-free caption feed."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Sequence, Set


class CaptionFeed:
    """Captions in display order, oldest first, unique by id.

    History pages arrive newest first and are reversed once on load so
    that realtime captions can simply be appended. Arrival order is
    display order; nothing is re-sorted by timestamp.
    """

    def __init__(self) -> None:
        self._captions: List[Dict[str, Any]] = []
        self._ids: Set[str] = set()

    @property
    def captions(self) -> List[Dict[str, Any]]:
        return list(self._captions)

    def load_history(self, newest_first: Sequence[Dict[str, Any]]) -> None:
        """Replace the feed with a reversed history page."""
        self._captions = []
        self._ids = set()
        for caption in reversed(newest_first):
            self.merge(caption)

    def merge(self, caption: Dict[str, Any]) -> bool:
        """Append `caption` unless its id is already present.

        Returns:
            True if the caption was appended.
        """
        caption_id = caption.get("id")
        if not caption_id or caption_id in self._ids:
            return False
        self._ids.add(caption_id)
        self._captions.append(caption)
        return True

    def __contains__(self, caption_id: object) -> bool:
        return caption_id in self._ids

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(list(self._captions))

    def __len__(self) -> int:
        return len(self._captions)
