"""Vision-language captioning through OpenAI's Responses API."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List

from openai import AsyncOpenAI

from services.inference.prompts import InferenceSettings
from services.inference.response_parser import extract_text, extract_usage

LOGGER = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 300
TEMPERATURE = 0.7


class InferenceError(RuntimeError):
	"""Raised when the inference provider fails or returns no text."""


class VlmCaptioner:
	"""Generate a free-text caption for a single image."""

	def __init__(self, client: AsyncOpenAI) -> None:
		if client is None:
			raise ValueError("AsyncOpenAI client is required.")
		self.client = client

	@staticmethod
	def _build_input(image_url: str, prompt: str) -> List[Dict[str, Any]]:
		return [
			{
				"role": "user",
				"content": [
					{"type": "input_text", "text": prompt},
					{"type": "input_image", "image_url": image_url},
				],
			}
		]

	async def caption(self, image_url: str, settings: InferenceSettings) -> Dict[str, Any]:
		"""Return the raw caption text plus latency and token usage.

		Args:
			image_url: Public URL or data URL of the frame.
			settings: Model and prompt resolved for this request.

		Raises:
			InferenceError: If the provider call fails or yields no text.
		"""
		start = time.time()
		try:
			response = await self.client.responses.create(
				model=settings.model,
				input=self._build_input(image_url, settings.prompt),
				max_output_tokens=MAX_OUTPUT_TOKENS,
				temperature=TEMPERATURE,
			)
		except Exception as exc:
			LOGGER.error("Error during OpenAI Responses API call: %s", exc)
			raise InferenceError(f"Failed to generate caption: {exc}") from exc

		text = extract_text(response).strip()
		if not text:
			raise InferenceError("Failed to generate caption: model returned no text")

		result: Dict[str, Any] = {"text": text, "latency": time.time() - start}
		result.update(extract_usage(response))
		LOGGER.info("Caption generated with %s in %.2fs", settings.model, result["latency"])
		return result
