"""Create and apply single-file unified diffs."""

from __future__ import annotations

import difflib
import re
from dataclasses import dataclass, field

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_NO_NEWLINE_MARKER = "\\ No newline at end of file"
_SEPARATOR = "=" * 67


class PatchApplyError(ValueError):
  """Raised when a diff does not match the source it is applied to."""


@dataclass
class _Hunk:
  old_start: int
  old_lines: list[str] = field(default_factory=list)
  new_lines: list[str] = field(default_factory=list)


def create_unified_diff(path: str, before: str, after: str) -> str:
  """Return a unified diff of before -> after labelled with path."""
  # Fixed header labels keep the diff identical across runs.
  lines = [f"{_SEPARATOR}\n", f"--- {path}\tbefore\n", f"+++ {path}\tafter\n"]
  body = difflib.unified_diff(before.splitlines(keepends=True), after.splitlines(keepends=True), n=4)
  for index, line in enumerate(body):
    # difflib emits its own ---/+++ pair first.
    if index < 2:
      continue
    if line.endswith("\n"):
      lines.append(line)
    else:
      lines.append(f"{line}\n{_NO_NEWLINE_MARKER}\n")
  return "".join(lines)


def _parse_hunks(diff: str) -> list[_Hunk]:
  hunks: list[_Hunk] = []
  current: _Hunk | None = None
  last_kind: str | None = None
  for raw in diff.splitlines():
    header = _HUNK_HEADER.match(raw)
    if header:
      current = _Hunk(old_start=int(header.group(1)))
      hunks.append(current)
      last_kind = None
      continue
    # Anything before the first hunk is header text.
    if current is None:
      continue
    if raw.startswith("\\"):
      # Marker applies to the line right before it.
      if last_kind in (" ", "-") and current.old_lines:
        current.old_lines[-1] = current.old_lines[-1].removesuffix("\n")
      if last_kind in (" ", "+") and current.new_lines:
        current.new_lines[-1] = current.new_lines[-1].removesuffix("\n")
      continue
    # Blank lines inside a hunk are context lines whose leading space was stripped.
    kind, text = (raw[:1] or " "), raw[1:]
    if kind == " ":
      current.old_lines.append(f"{text}\n")
      current.new_lines.append(f"{text}\n")
    elif kind == "-":
      current.old_lines.append(f"{text}\n")
    elif kind == "+":
      current.new_lines.append(f"{text}\n")
    else:
      raise PatchApplyError(f"Unexpected line in hunk: {raw!r}")
    last_kind = kind
  return hunks


def _matches(lines: list[str], start: int, expected: list[str]) -> bool:
  if start < 0 or start + len(expected) > len(lines):
    return False
  return lines[start : start + len(expected)] == expected


def _locate(lines: list[str], hunk: _Hunk, floor: int, offset: int) -> int | None:
  # A pure insertion at line 0 has no context to match.
  if not hunk.old_lines:
    return max(hunk.old_start + offset, floor)
  # Search outward from the expected line, never above the previous hunk.
  expected = max(hunk.old_start - 1 + offset, floor)
  for distance in range(len(lines) + 1):
    for candidate in (expected - distance, expected + distance):
      if candidate >= floor and _matches(lines, candidate, hunk.old_lines):
        return candidate
  return None


def apply_unified_diff(original: str, diff: str) -> str:
  """Apply diff to original, raising PatchApplyError when a hunk does not fit."""
  hunks = _parse_hunks(diff)
  if not hunks:
    return original

  # Track how far earlier hunks shifted the source.
  lines = original.splitlines(keepends=True)
  offset = 0
  floor = 0
  for number, hunk in enumerate(hunks, start=1):
    position = _locate(lines, hunk, floor, offset)
    if position is None:
      raise PatchApplyError(f"Patch failed to apply: hunk {number} does not match the source")
    lines[position : position + len(hunk.old_lines)] = hunk.new_lines
    offset += len(hunk.new_lines) - len(hunk.old_lines)
    floor = position + len(hunk.new_lines)
  return "".join(lines)
