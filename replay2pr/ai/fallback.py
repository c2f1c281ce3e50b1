"""Retry and one-way fallback policy wrapped around every inference call."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from replay2pr.ai.failures import classify_inference_failure

T = TypeVar("T")
logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30.0

LogFn = Callable[[str], Awaitable[None]]
SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class RunContext:
  """Per-run inference mode; fallback can be entered but never left."""

  job_id: str
  fallback: bool = False
  fallback_reason: str | None = None

  def demote(self, reason: str) -> None:
    if not self.fallback:
      self.fallback = True
      self.fallback_reason = reason


class InferencePolicy:
  """Retry recoverable failures with exponential backoff, then demote the run."""

  def __init__(self, *, max_retries: int = 2, backoff_seconds: float = 1.0, sleep: SleepFn = asyncio.sleep) -> None:
    self._max_retries = max(max_retries, 0)
    self._backoff_seconds = backoff_seconds
    self._sleep = sleep

  def delay_for(self, attempt: int) -> float:
    """Backoff before retry number attempt + 1."""
    return min(self._backoff_seconds * (2**attempt), MAX_BACKOFF_SECONDS)

  async def call(self, context: RunContext, *, live: Callable[[], Awaitable[T]], fallback: Callable[[], Awaitable[T]], log: LogFn) -> T:
    """Run live unless the run is demoted; fatal errors propagate untouched."""
    if context.fallback:
      return await fallback()

    attempt = 0
    while True:
      try:
        return await live()
      except Exception as exc:
        classification = classify_inference_failure(exc)
        if not classification.recoverable:
          raise
        if attempt < self._max_retries:
          delay = self.delay_for(attempt)
          attempt += 1
          logger.warning("Recoverable inference failure job=%s attempt=%s/%s: %s", context.job_id, attempt, self._max_retries, classification.reason)
          await log(f"Gemini call failed ({classification.reason}). Retrying in {delay:g}s (attempt {attempt}/{self._max_retries}).")
          await self._sleep(delay)
          continue
        context.demote(classification.reason)
        logger.warning("Demoting job=%s to mock responses: %s", context.job_id, classification.reason)
        await log(f"Gemini unavailable ({classification.reason}). Falling back to mock responses for this run.")
        return await fallback()
