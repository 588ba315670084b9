"""Helpers to extract text and usage from Responses API output."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional


def join_chunks(output: Any) -> str:
	"""Concatenate streamed or list-shaped model output into one string."""
	if output is None:
		return ""
	if isinstance(output, str):
		return output
	if isinstance(output, Iterable):
		return "".join(str(chunk) for chunk in output)
	return str(output)


def extract_text(response: Any) -> str:
	"""Return all output_text entries of the response, concatenated."""
	output_text = getattr(response, "output_text", None)
	if output_text:
		return join_chunks(output_text)
	chunks = []
	for item in getattr(response, "output", None) or []:
		if getattr(item, "type", None) != "message":
			continue
		for content in getattr(item, "content", None) or []:
			if getattr(content, "type", None) == "output_text":
				chunks.append(getattr(content, "text", "") or "")
	return join_chunks(chunks)


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
	"""Return token usage if present."""
	usage = getattr(response, "usage", None)
	return {
		"input_tokens": getattr(usage, "input_tokens", None) if usage else None,
		"output_tokens": getattr(usage, "output_tokens", None) if usage else None,
	}
