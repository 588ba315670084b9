"""Split raw model output into the Thoughts/Observations caption structure.

The canonical policy: the final sentence is the observation and every
preceding sentence is a thought. Sentences end at `.`, `!` or `?`
followed by whitespace.
"""

from __future__ import annotations

import re
from typing import List

from models.caption_record import FormattedCaption

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def split_sentences(text: str) -> List[str]:
    """Return the sentences of `text`, trimmed, in order."""
    stripped = text.strip()
    if not stripped:
        return []
    return _SENTENCE_BOUNDARY.split(stripped)


def format_caption(raw: str) -> FormattedCaption:
    """Format raw inference text into thoughts and a closing observation.

    Raises:
        ValueError: If the model returned no text.
    """
    sentences = split_sentences(raw)
    if not sentences:
        raise ValueError("Model returned an empty caption.")
    if len(sentences) == 1:
        return FormattedCaption(thoughts=None, observations=raw.strip())
    return FormattedCaption(thoughts=" ".join(sentences[:-1]), observations=sentences[-1])

