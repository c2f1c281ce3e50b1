"""Run generated Playwright tests against the demo target."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx
from starlette.concurrency import run_in_threadpool

from replay2pr.config import Settings
from replay2pr.services.artifacts import JobArtifacts
from replay2pr.services.demo_target import demo_target_for_job

logger = logging.getLogger(__name__)

LOG_FILENAME = "playwright.log"
OUTPUT_DIRNAME = "playwright-output"
REACHABILITY_BASE_DELAY = 0.3
REACHABILITY_MAX_DELAY = 1.5
PLAYWRIGHT_COMMAND = ("npx", "playwright", "test")


@dataclass(frozen=True)
class RunResult:
  """Outcome of one test invocation."""

  passed: bool
  summary: str
  output: str
  output_path: str


class TestRunner(Protocol):
  """Executes a generated test for a job."""

  __test__ = False

  async def run_test(self, test_file: Path, job_id: str) -> RunResult: ...


class PlaywrightTestRunner:
  """Invoke `npx playwright test` in a subprocess with a hard timeout."""

  __test__ = False

  def __init__(self, *, artifacts: JobArtifacts, base_url: str, timeout_seconds: float = 120.0, reachability_timeout_seconds: float = 10.0, cwd: Path | None = None, command: Sequence[str] = PLAYWRIGHT_COMMAND, transport: httpx.AsyncBaseTransport | None = None, clock: Callable[[], float] = time.monotonic, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
    self._artifacts = artifacts
    self._base_url = base_url
    self._timeout_seconds = timeout_seconds
    self._reachability_timeout_seconds = reachability_timeout_seconds
    self._cwd = cwd
    self._command = tuple(command)
    self._transport = transport
    self._clock = clock
    self._sleep = sleep

  async def ensure_reachable(self) -> bool:
    """Poll the base URL with capped exponential backoff until it answers or the budget runs out."""
    deadline = self._clock() + self._reachability_timeout_seconds
    attempt = 0
    async with httpx.AsyncClient(timeout=httpx.Timeout(5.0), follow_redirects=True, transport=self._transport) as client:
      while self._clock() < deadline:
        try:
          response = await client.get(self._base_url, headers={"Cache-Control": "no-store"})
          if response.is_success:
            return True
        except httpx.HTTPError as exc:
          logger.debug("Target not reachable yet url=%s: %s", self._base_url, exc)
        await self._sleep(min(REACHABILITY_MAX_DELAY, REACHABILITY_BASE_DELAY * (2**attempt)))
        attempt += 1
    return False

  async def run_test(self, test_file: Path, job_id: str) -> RunResult:
    job_dir = self._artifacts.job_dir(job_id)
    output_path = job_dir / OUTPUT_DIRNAME

    if not await self.ensure_reachable():
      output = f"Base URL not reachable: {self._base_url}"
      return await self._finish(job_id, RunResult(passed=False, summary="Playwright skipped (server unreachable)", output=output, output_path=str(output_path)))

    command = [*self._command, str(test_file), "--reporter=line", f"--output={output_path}"]
    env = {**os.environ, "BASE_URL": self._base_url}
    logger.info("Running Playwright job=%s file=%s", job_id, test_file)
    try:
      process = await asyncio.create_subprocess_exec(*command, cwd=self._cwd, env=env, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE)
    except OSError as exc:
      return await self._finish(job_id, RunResult(passed=False, summary="Playwright run failed", output=f"Unable to start Playwright: {exc}", output_path=str(output_path)))

    try:
      stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout_seconds)
    except TimeoutError:
      process.kill()
      await process.wait()
      output = f"Playwright timed out after {self._timeout_seconds:g}s"
      return await self._finish(job_id, RunResult(passed=False, summary="Playwright run timed out", output=output, output_path=str(output_path)))

    output = f"{stdout.decode(errors='replace')}\n{stderr.decode(errors='replace')}".strip()
    passed = process.returncode == 0
    summary = "Playwright run passed" if passed else "Playwright run failed"
    return await self._finish(job_id, RunResult(passed=passed, summary=summary, output=output, output_path=str(output_path)))

  async def _finish(self, job_id: str, result: RunResult) -> RunResult:
    await run_in_threadpool(self._artifacts.write_text, job_id, LOG_FILENAME, result.output)
    logger.info("Playwright finished job=%s passed=%s summary=%s", job_id, result.passed, result.summary)
    return result


class SimulatedTestRunner:
  """Evaluate the demo target source instead of driving a browser."""

  __test__ = False

  def __init__(self, *, artifacts: JobArtifacts, demo_target_path: Path | None = None) -> None:
    self._artifacts = artifacts
    self._demo_target_path = demo_target_path

  async def run_test(self, test_file: Path, job_id: str) -> RunResult:
    target = demo_target_for_job(self._artifacts.job_dir(job_id), self._demo_target_path)
    passed = await target.is_fixed()
    name = test_file.name
    if passed:
      output = f"Running 1 test using 1 worker\n  1 passed\n[simulated] {name}: success banner visible, status chip shows Sent."
      summary = "Playwright run passed"
    else:
      output = f"Running 1 test using 1 worker\n  1 failed\n[simulated] {name}: expect(getByTestId('success-banner')).toBeVisible() failed."
      summary = "Playwright run failed"
    await run_in_threadpool(self._artifacts.write_text, job_id, LOG_FILENAME, output)
    return RunResult(passed=passed, summary=summary, output=output, output_path=str(self._artifacts.job_dir(job_id) / OUTPUT_DIRNAME))


def build_test_runner(settings: Settings, artifacts: JobArtifacts) -> TestRunner:
  """Select the runner configured by REPLAY_TEST_RUNNER."""
  if settings.test_runner == "simulated":
    return SimulatedTestRunner(artifacts=artifacts, demo_target_path=settings.demo_target_path)
  return PlaywrightTestRunner(artifacts=artifacts, base_url=settings.base_url, timeout_seconds=settings.test_timeout_seconds, reachability_timeout_seconds=settings.reachability_timeout_seconds)
