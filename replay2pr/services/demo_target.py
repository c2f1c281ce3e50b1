"""Source file the demo pipeline reproduces and patches."""

from __future__ import annotations

from pathlib import Path

from starlette.concurrency import run_in_threadpool

from replay2pr.services.artifacts import write_text_atomic

TEMPLATE_PATH = Path(__file__).resolve().parents[1] / "templates" / "buggy-form.template.tsx"
TARGET_LABEL = "app/demo/buggy-form.tsx"
TARGET_FILENAME = "buggy-form.tsx"

# Markers present in the source once the demo bug is fixed.
FIX_MARKERS = ("setSubmitted(true)", 'setStatus("Sent")')


class DemoTarget:
  """Read, write and reset one copy of the demo form source."""

  def __init__(self, path: Path, *, template_path: Path = TEMPLATE_PATH, label: str = TARGET_LABEL) -> None:
    self.path = path
    self.template_path = template_path
    self.label = label

  async def reset(self) -> None:
    """Restore the buggy template so each run starts from the same source."""
    template = await run_in_threadpool(self.template_path.read_text, encoding="utf-8")
    await self.write(template)

  async def read(self) -> str:
    return await run_in_threadpool(self.path.read_text, encoding="utf-8")

  async def write(self, contents: str) -> None:
    await run_in_threadpool(write_text_atomic, self.path, contents)

  async def is_fixed(self) -> bool:
    source = await self.read()
    return all(marker in source for marker in FIX_MARKERS)


def demo_target_for_job(job_dir: Path, shared_path: Path | None = None) -> DemoTarget:
  """Use the configured shared target when set, otherwise a private copy in the job directory."""
  if shared_path is not None:
    return DemoTarget(shared_path)
  return DemoTarget(job_dir / TARGET_FILENAME)
