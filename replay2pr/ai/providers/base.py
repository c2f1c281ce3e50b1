"""Base interfaces for inference models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class StructuredModelResponse:
  """Structured model response structure."""

  content: dict[str, Any]
  usage: dict[str, int] | None = None


class InferenceModel(ABC):
  """Abstract base class for models that return JSON objects."""

  name: str

  @abstractmethod
  async def generate_json(self, prompt: str) -> StructuredModelResponse:
    """Generate a JSON object for the given prompt; raise classified inference errors on failure."""
