"""Inference failure classification: recoverable (retry, then fall back) vs fatal (abort the job)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

FailureCategory = Literal["rate_limited", "quota_exhausted", "model_unavailable", "malformed_response", "unknown_error"]

_QUOTA_PATTERNS = ("resource_exhausted", "resource exhausted", "quota")
_RATE_LIMIT_PATTERNS = ("429", "too many requests", "rate limit")
_MODEL_UNAVAILABLE_PATTERNS = ("is not found for api version", "model not found", "not supported for generatecontent", "overloaded")


@dataclass(frozen=True)
class InferenceFailureClassification:
  """Classification result for an inference failure."""

  recoverable: bool
  reason: str
  category: FailureCategory


class InferenceError(RuntimeError):
  """Base class for classified inference failures."""

  def __init__(self, message: str, *, classification: InferenceFailureClassification) -> None:
    super().__init__(message)
    self.classification = classification

  @property
  def reason(self) -> str:
    return self.classification.reason


class InferenceRecoverableError(InferenceError):
  """Transient failure that the fallback policy absorbs."""


class InferenceFatalError(InferenceError):
  """Failure that aborts the active job."""


def _status_code(exc: BaseException) -> int | None:
  # google-genai APIError exposes the HTTP status as `code`; httpx errors carry a response.
  code = getattr(exc, "code", None)
  if isinstance(code, int):
    return code
  response = getattr(exc, "response", None)
  status_code = getattr(response, "status_code", None)
  if isinstance(status_code, int):
    return status_code
  return None


def classify_inference_failure(exc: BaseException) -> InferenceFailureClassification:
  """
  Classify an inference failure as recoverable or fatal.

  Primary signal: HTTP status code reported by the SDK.
  Fallback: status names and message patterns.

  Recoverable (transient):
    - 429 / RESOURCE_EXHAUSTED: rate limit or quota exhaustion
    - 404 naming a model, "not found for API version": requested model unavailable
    - 503 / UNAVAILABLE: model overloaded

  Fatal (permanent):
    - authentication and permission errors
    - malformed responses and schema validation failures
    - anything unrecognised
  """
  if isinstance(exc, InferenceError):
    return exc.classification

  code = _status_code(exc)
  status = str(getattr(exc, "status", "") or "").upper()
  message = str(exc)
  lowered = message.lower()

  if status == "RESOURCE_EXHAUSTED" or any(pattern in lowered for pattern in _QUOTA_PATTERNS):
    return InferenceFailureClassification(recoverable=True, reason=f"quota exhausted: {message}", category="quota_exhausted")

  if code == 429 or any(pattern in lowered for pattern in _RATE_LIMIT_PATTERNS):
    return InferenceFailureClassification(recoverable=True, reason=f"rate limited: {message}", category="rate_limited")

  if code == 503 or status == "UNAVAILABLE":
    return InferenceFailureClassification(recoverable=True, reason=f"model unavailable: {message}", category="model_unavailable")

  if (code == 404 or status == "NOT_FOUND") and "model" in lowered:
    return InferenceFailureClassification(recoverable=True, reason=f"model unavailable: {message}", category="model_unavailable")

  if code is None and any(pattern in lowered for pattern in _MODEL_UNAVAILABLE_PATTERNS) and "model" in lowered:
    return InferenceFailureClassification(recoverable=True, reason=f"model unavailable: {message}", category="model_unavailable")

  return InferenceFailureClassification(recoverable=False, reason=f"{type(exc).__name__}: {message}", category="unknown_error")


def malformed_response(message: str) -> InferenceFatalError:
  """Build the fatal error raised when a response fails parsing or schema validation."""
  classification = InferenceFailureClassification(recoverable=False, reason=f"malformed response: {message}", category="malformed_response")
  return InferenceFatalError(f"Gemini returned an invalid response: {message}", classification=classification)


def as_inference_error(exc: BaseException) -> InferenceError:
  """Wrap a provider exception in the matching classified error."""
  classification = classify_inference_failure(exc)
  if classification.recoverable:
    return InferenceRecoverableError(classification.reason, classification=classification)
  return InferenceFatalError(classification.reason, classification=classification)
