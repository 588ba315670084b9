from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class FormattedCaption:
    """Structured caption text split into its two segments.

    Attributes:
        thoughts: Every sentence but the last, or None for single-sentence output.
        observations: The closing observation sentence.
    """

    thoughts: Optional[str]
    observations: str

    @property
    def text(self) -> str:
        """Render the caption the way it is displayed and stored."""
        if self.thoughts is None:
            return f"Observations: {self.observations}"
        return f"Thoughts: {self.thoughts}\n\nObservations: {self.observations}"


@dataclass
class CaptionRecord:
    """In-memory representation of a row in the CAPTION table.

    Attributes:
        id: Primary key, a uuid4 string generated at submission time.
        session_id: Owning session id.
        timestamp: Capture time as a fixed-width ISO-8601 UTC string.
        image_path: Storage-relative path of the uploaded frame.
        image_url: Public URL derived from `image_path`.
        caption: Rendered caption text.
        thoughts: Structured "Thoughts" segment, if any.
        observations: Structured "Observations" segment.
        raw_caption: Unformatted model output.
        model: Model id used for inference.
        prompt: Prompt text used for inference.
    """

    id: str
    session_id: str
    timestamp: str
    image_path: str
    image_url: str
    caption: str
    thoughts: Optional[str]
    observations: str
    raw_caption: Optional[str] = None
    model: Optional[str] = None
    prompt: Optional[str] = None

    def to_api(self) -> Dict[str, Any]:
        """Return the JSON shape served by the history endpoint."""
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "timestamp": self.timestamp,
            "imagePath": self.image_path,
            "imageUrl": self.image_url,
            "caption": self.caption,
            "thoughts": self.thoughts,
            "observations": self.observations,
        }
