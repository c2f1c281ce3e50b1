"""Inference client for the three replay pipeline calls."""

from __future__ import annotations

import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from replay2pr.ai import mock
from replay2pr.ai.contracts import GeneratedTest, PatchPlan, ReproDescription
from replay2pr.ai.failures import malformed_response
from replay2pr.ai.prompts import render_patch_prompt, render_repro_prompt, render_test_prompt
from replay2pr.ai.providers.base import InferenceModel
from replay2pr.ai.providers.gemini import GeminiModel
from replay2pr.config import Settings

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ReplayInference:
  """Structured inference calls with a deterministic fallback path."""

  def __init__(self, *, flash_model: InferenceModel | None = None, pro_model: InferenceModel | None = None) -> None:
    self._flash_model = flash_model
    self._pro_model = pro_model or flash_model

  @property
  def live_available(self) -> bool:
    """Return True when a live model is configured."""
    return self._flash_model is not None and self._pro_model is not None

  async def extract_repro_steps(self, notes: str, video_info: str, *, force_fallback: bool = False) -> ReproDescription:
    if force_fallback or self._flash_model is None:
      return mock.mock_repro()
    prompt = render_repro_prompt(notes=notes, video_info=video_info)
    return await _generate(self._flash_model, prompt, ReproDescription)

  async def generate_playwright_test(self, repro: ReproDescription, base_url_hint: str, *, force_fallback: bool = False) -> GeneratedTest:
    if force_fallback or self._flash_model is None:
      return mock.mock_test()
    prompt = render_test_prompt(repro=repro, base_url_hint=base_url_hint)
    return await _generate(self._flash_model, prompt, GeneratedTest)

  async def generate_patch(self, repro: ReproDescription, test_output: str, current_source: str, target_label: str, *, force_fallback: bool = False) -> PatchPlan:
    if force_fallback or self._pro_model is None:
      return mock.mock_patch(current_source, target_label)
    prompt = render_patch_prompt(repro=repro, test_output=test_output, current_source=current_source, target_label=target_label)
    return await _generate(self._pro_model, prompt, PatchPlan)


async def _generate(model: InferenceModel, prompt: str, schema: type[ModelT]) -> ModelT:
  response = await model.generate_json(prompt)
  if response.usage:
    logger.info("Gemini usage model=%s schema=%s tokens=%s", model.name, schema.__name__, response.usage.get("total_tokens"))
  try:
    return schema.model_validate(response.content)
  except ValidationError as exc:
    raise malformed_response(f"{schema.__name__} failed validation: {exc.error_count()} error(s)") from exc


def build_inference(settings: Settings) -> ReplayInference:
  """Wire live Gemini models unless mock inference is configured."""
  if settings.mock_inference:
    logger.info("Gemini inference disabled; all runs use mock responses.")
    return ReplayInference()

  api_key = settings.gemini_api_key or ""
  return ReplayInference(flash_model=GeminiModel(settings.gemini_model_flash, api_key), pro_model=GeminiModel(settings.gemini_model_pro, api_key))
