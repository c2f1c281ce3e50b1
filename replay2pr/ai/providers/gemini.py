"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import json
import logging
from typing import Any, cast

from google import genai
from google.genai import errors as genai_errors

from replay2pr.ai.failures import as_inference_error, malformed_response
from replay2pr.ai.providers.base import InferenceModel, StructuredModelResponse

logger = logging.getLogger(__name__)

_GENERATION_CONFIG: dict[str, Any] = {"temperature": 0.2, "response_mime_type": "application/json"}


def extract_json(text: str | None) -> dict[str, Any]:
  """Parse the outermost JSON object in a model response."""
  if not text:
    raise malformed_response("empty response")
  first = text.find("{")
  last = text.rfind("}")
  if first == -1 or last == -1:
    raise malformed_response("no JSON object found in Gemini response")
  try:
    parsed = json.loads(text[first : last + 1])
  except json.JSONDecodeError as exc:
    raise malformed_response(str(exc)) from exc
  if not isinstance(parsed, dict):
    raise malformed_response("expected a JSON object")
  return cast(dict[str, Any], parsed)


class GeminiModel(InferenceModel):
  """Gemini model client returning JSON-mode responses."""

  def __init__(self, name: str, api_key: str, *, client: genai.Client | None = None) -> None:
    if not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")
    self.name = name
    self._client = client or genai.Client(api_key=api_key)

  async def generate_json(self, prompt: str) -> StructuredModelResponse:
    """Generate a JSON object from Gemini, raising classified errors."""
    try:
      # Use the async client to avoid blocking the asyncio event loop.
      response = await self._client.aio.models.generate_content(model=self.name, contents=prompt, config=_GENERATION_CONFIG)
    except genai_errors.APIError as exc:
      logger.warning("Gemini call failed model=%s code=%s status=%s", self.name, exc.code, exc.status)
      raise as_inference_error(exc) from exc

    logger.debug("Gemini structured response (raw):\n%s", response.text)
    usage = None
    if response.usage_metadata:
      usage = {"prompt_tokens": response.usage_metadata.prompt_token_count, "completion_tokens": response.usage_metadata.candidates_token_count, "total_tokens": response.usage_metadata.total_token_count}
    return StructuredModelResponse(content=extract_json(response.text), usage=usage)
