"""Errors raised by the job engine before or around pipeline execution."""

from __future__ import annotations


class JobValidationError(ValueError):
  """Raised when a job submission is rejected before it is enqueued."""

  def __init__(self, message: str, *, field: str | None = None) -> None:
    super().__init__(message)
    self.field = field
