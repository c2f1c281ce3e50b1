"""Utility helpers for msgspec response encoding."""

from __future__ import annotations

import msgspec
from starlette.responses import Response


def encode_msgspec_response(payload: msgspec.Struct, *, status_code: int = 200, headers: dict[str, str] | None = None, indent: int | None = None) -> Response:
  """Encode a msgspec.Struct value as a JSON HTTP response."""
  encoded = msgspec.json.encode(payload)
  if indent is not None:
    encoded = msgspec.json.format(encoded, indent=indent)
  return Response(content=encoded, status_code=status_code, media_type="application/json", headers=headers)
