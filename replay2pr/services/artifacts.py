"""Filesystem layout for per-job artifacts."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

ARTIFACT_URL_PREFIX = "/api/artifacts/jobs"


def safe_join(base: Path, *parts: str) -> Path:
  """Join path parts under base, refusing anything that escapes it."""
  root = base.resolve()
  resolved = root.joinpath(*parts).resolve()
  if resolved != root and root not in resolved.parents:
    raise ValueError("Unsafe path")
  return resolved


def write_text_atomic(path: Path, contents: str | bytes) -> None:
  """Write a file so concurrent readers see either the old or the new contents."""
  path.parent.mkdir(parents=True, exist_ok=True)
  tmp_path = path.with_name(f".{path.name}.tmp")
  if isinstance(contents, bytes):
    tmp_path.write_bytes(contents)
  else:
    tmp_path.write_text(contents, encoding="utf-8")
  os.replace(tmp_path, path)


class JobArtifacts:
  """Resolve and write files under <root>/jobs/<job_id>/."""

  def __init__(self, root: Path) -> None:
    self.root = root
    self.jobs_dir = root / "jobs"

  def ensure_structure(self) -> None:
    (self.root / "uploads").mkdir(parents=True, exist_ok=True)
    self.jobs_dir.mkdir(parents=True, exist_ok=True)

  def job_dir(self, job_id: str) -> Path:
    return safe_join(self.jobs_dir, job_id)

  def path(self, job_id: str, name: str) -> Path:
    return safe_join(self.job_dir(job_id), name)

  def write_text(self, job_id: str, name: str, contents: str) -> Path:
    path = self.path(job_id, name)
    write_text_atomic(path, contents)
    return path

  def write_json(self, job_id: str, name: str, data: Any) -> Path:
    return self.write_text(job_id, name, json.dumps(data, indent=2))

  def read_text(self, job_id: str, name: str) -> str | None:
    try:
      return self.path(job_id, name).read_text(encoding="utf-8")
    except (FileNotFoundError, ValueError):
      return None

  def url(self, job_id: str, name: str) -> str:
    """Public URL served by the artifacts route."""
    return f"{ARTIFACT_URL_PREFIX}/{job_id}/{name}"

  def relative(self, path: Path) -> str:
    """Path relative to the artifacts root's parent, for display in job records."""
    try:
      return path.relative_to(self.root.parent).as_posix()
    except ValueError:
      return path.as_posix()


def placeholder_svg(label: str) -> str:
  """Render an evidence placeholder image."""
  return (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<svg width="1200" height="675" viewBox="0 0 1200 675" fill="none" xmlns="http://www.w3.org/2000/svg">\n'
    "  <defs>\n"
    '    <linearGradient id="g" x1="0" y1="0" x2="1" y2="1">\n'
    '      <stop offset="0%" stop-color="#0b1220"/>\n'
    '      <stop offset="50%" stop-color="#142035"/>\n'
    '      <stop offset="100%" stop-color="#0b1220"/>\n'
    "    </linearGradient>\n"
    "  </defs>\n"
    '  <rect width="1200" height="675" rx="28" fill="url(#g)"/>\n'
    '  <rect x="70" y="70" width="1060" height="535" rx="22" stroke="#1f2a3a" stroke-width="2" fill="#0e1726"/>\n'
    f'  <text x="120" y="190" font-family="Arial" font-size="42" fill="#93c5fd" font-weight="700">{label}</text>\n'
    '  <text x="120" y="245" font-family="Arial" font-size="22" fill="#9ab0c8">Replay2PR Evidence Placeholder</text>\n'
    '  <text x="120" y="515" font-family="Arial" font-size="18" fill="#6b7d96">Generated for demo mode. Replace with real Playwright screenshots when available.</text>\n'
    "</svg>"
  )
