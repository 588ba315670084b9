"""Prompt presets and model aliases for caption inference."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

PROMPTS = {
	"DEFAULT": (
		"Write out your thought process for a bit about all the things happening in this scene, "
		"and then state the most important or interesting thing happening in this scene in one "
		"concise sentence without explaining why it's important or interesting."
	),
	"DETAILED": (
		"Analyze this image in detail. First, describe everything you see as internal thoughts. "
		"Then provide one clear, concise observation that captures the most important or interesting element."
	),
	"BRIEF": "Quickly analyze this image and provide a brief thought process followed by one key observation.",
}

DEFAULT_PROMPT_KEY = "DEFAULT"

MODEL_ALIASES = {
	"fast": "gpt-4o-mini",
	"detailed": "gpt-4o",
}


@dataclass(frozen=True)
class InferenceSettings:
	"""Model and prompt resolved for a single caption request."""

	model: str
	prompt: str


def resolve_prompt(prompt: Optional[str]) -> str:
	"""Return preset text for an exact preset key, or the literal prompt otherwise."""
	if prompt is None or not prompt.strip():
		return PROMPTS[DEFAULT_PROMPT_KEY]
	return PROMPTS.get(prompt, prompt)


def resolve_model(model: Optional[str], default_model: str) -> str:
	"""Map a model alias to its id; unknown names are passed through."""
	if model is None or not model.strip():
		return default_model
	return MODEL_ALIASES.get(model.strip().lower(), model.strip())


def resolve_settings(model: Optional[str], prompt: Optional[str], default_model: str) -> InferenceSettings:
	"""Resolve per-request inference settings without touching shared state."""
	return InferenceSettings(model=resolve_model(model, default_model), prompt=resolve_prompt(prompt))
