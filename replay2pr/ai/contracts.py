"""Structured payloads exchanged with the inference service."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ReproDescription(BaseModel):
  """Reproduction description extracted from a bug report."""

  summary: str
  steps: list[str] = Field(min_length=1)
  expected: str
  actual: str
  confidence: Literal["low", "medium", "high"]


class GeneratedTest(BaseModel):
  """Executable Playwright test synthesized from a reproduction description."""

  test_code: str = Field(alias="testCode", min_length=1)
  model_config = ConfigDict(populate_by_name=True)


class PatchPlan(BaseModel):
  """Patch description returned for the current target source."""

  summary: str
  diff: str
