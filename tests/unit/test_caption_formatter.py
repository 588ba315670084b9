"""
Unit tests for the Thoughts/Observations caption formatter.
"""
import pytest

from services.caption_formatter import format_caption, split_sentences


class TestFormatCaption:
    """Tests for format_caption"""

    def test_single_sentence_is_observation_only(self):
        formatted = format_caption("A dog runs across the park.")
        assert formatted.thoughts is None
        assert formatted.observations == "A dog runs across the park."
        assert formatted.text == "Observations: A dog runs across the park."

    def test_single_sentence_without_terminal_punctuation(self):
        assert format_caption("a quiet street").text == "Observations: a quiet street"

    def test_last_sentence_becomes_observation(self):
        raw = "A cat sits on a mat. It looks content. The most interesting thing is the cat's hat."
        formatted = format_caption(raw)
        assert formatted.thoughts == "A cat sits on a mat. It looks content."
        assert formatted.observations == "The most interesting thing is the cat's hat."
        assert formatted.text == (
            "Thoughts: A cat sits on a mat. It looks content.\n\n"
            "Observations: The most interesting thing is the cat's hat."
        )

    def test_mixed_terminators_and_whitespace(self):
        raw = "  Is that rain?\n It is!   Everyone is running.  "
        formatted = format_caption(raw)
        assert formatted.thoughts == "Is that rain? It is!"
        assert formatted.observations == "Everyone is running."

    def test_punctuation_without_whitespace_does_not_split(self):
        formatted = format_caption("Version 2.5 of the sign is visible.")
        assert formatted.thoughts is None

    @pytest.mark.parametrize("raw", ["", "   ", "\n"])
    def test_empty_output_rejected(self, raw):
        with pytest.raises(ValueError):
            format_caption(raw)


class TestSegmentation:
    """The structured segments keep every sentence of the raw output"""

    @pytest.mark.parametrize(
        "raw",
        [
            "One sentence only.",
            "First. Second.",
            "A man reads.  A woman writes!\tA child asks why? The dog sleeps.",
        ],
    )
    def test_segments_preserve_sentences(self, raw):
        formatted = format_caption(raw)
        recovered = split_sentences(formatted.thoughts or "") + split_sentences(formatted.observations)
        assert recovered == split_sentences(raw)

    def test_rendered_text_is_built_from_segments(self):
        formatted = format_caption("First. Second.")
        assert formatted.text == f"Thoughts: {formatted.thoughts}\n\nObservations: {formatted.observations}"
