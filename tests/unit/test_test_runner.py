from __future__ import annotations

import sys
from pathlib import Path

import httpx
import pytest

from replay2pr.services.artifacts import JobArtifacts
from replay2pr.services.demo_target import FIX_MARKERS, demo_target_for_job
from replay2pr.services.test_runner import PlaywrightTestRunner, SimulatedTestRunner, build_test_runner


class FakeClock:
  """Monotonic clock advanced only by the paired sleep double."""

  def __init__(self) -> None:
    self.now = 0.0
    self.delays: list[float] = []

  def __call__(self) -> float:
    return self.now

  async def sleep(self, delay: float) -> None:
    self.delays.append(delay)
    self.now += delay


def _ok_transport() -> httpx.MockTransport:
  return httpx.MockTransport(lambda request: httpx.Response(200, text="ok"))


@pytest.mark.anyio
async def test_simulated_runner_fails_until_the_target_is_fixed(artifacts: JobArtifacts) -> None:
  target = demo_target_for_job(artifacts.job_dir("job-1"))
  await target.reset()
  runner = SimulatedTestRunner(artifacts=artifacts)

  before = await runner.run_test(Path("generated.spec.ts"), "job-1")
  source = await target.read()
  await target.write(source.replace("setSubmitted(false)", "setSubmitted(true)").replace('setStatus("Draft")', 'setStatus("Sent")'))
  after = await runner.run_test(Path("generated.spec.ts"), "job-1")

  assert before.passed is False
  assert after.passed is True
  patched = await target.read()
  assert all(marker in patched for marker in FIX_MARKERS)
  assert artifacts.read_text("job-1", "playwright.log") == after.output


@pytest.mark.anyio
async def test_unreachable_target_is_a_failed_run_after_capped_backoff(artifacts: JobArtifacts) -> None:
  clock = FakeClock()
  transport = httpx.MockTransport(lambda request: httpx.Response(503))
  runner = PlaywrightTestRunner(artifacts=artifacts, base_url="http://localhost:3999", reachability_timeout_seconds=5.0, transport=transport, clock=clock, sleep=clock.sleep)

  result = await runner.run_test(Path("generated.spec.ts"), "job-2")

  assert result.passed is False
  assert result.summary == "Playwright skipped (server unreachable)"
  assert result.output == "Base URL not reachable: http://localhost:3999"
  assert clock.delays[:4] == [0.3, 0.6, 1.2, 1.5]
  assert max(clock.delays) == 1.5
  assert artifacts.read_text("job-2", "playwright.log") == result.output


@pytest.mark.anyio
async def test_connection_errors_are_retried_until_reachable(artifacts: JobArtifacts) -> None:
  clock = FakeClock()
  attempts = {"count": 0}

  def handler(request: httpx.Request) -> httpx.Response:
    attempts["count"] += 1
    if attempts["count"] < 3:
      raise httpx.ConnectError("refused", request=request)
    return httpx.Response(200)

  runner = PlaywrightTestRunner(artifacts=artifacts, base_url="http://localhost:3000", transport=httpx.MockTransport(handler), clock=clock, sleep=clock.sleep)
  assert await runner.ensure_reachable() is True
  assert clock.delays == [0.3, 0.6]


@pytest.mark.anyio
async def test_subprocess_exit_code_decides_the_result(artifacts: JobArtifacts, tmp_path: Path) -> None:
  passing = PlaywrightTestRunner(artifacts=artifacts, base_url="http://localhost:3000", transport=_ok_transport(), command=(sys.executable, "-c", "print('1 passed')"), cwd=tmp_path)
  failing = PlaywrightTestRunner(artifacts=artifacts, base_url="http://localhost:3000", transport=_ok_transport(), command=(sys.executable, "-c", "import sys; print('1 failed'); sys.exit(1)"), cwd=tmp_path)

  passed = await passing.run_test(Path("generated.spec.ts"), "job-3")
  failed = await failing.run_test(Path("generated.spec.ts"), "job-3")

  assert passed.passed is True
  assert passed.summary == "Playwright run passed"
  assert "1 passed" in passed.output
  assert failed.passed is False
  assert failed.summary == "Playwright run failed"
  assert "1 failed" in failed.output


@pytest.mark.anyio
async def test_hard_timeout_turns_into_a_failed_run(artifacts: JobArtifacts, tmp_path: Path) -> None:
  runner = PlaywrightTestRunner(artifacts=artifacts, base_url="http://localhost:3000", timeout_seconds=0.2, transport=_ok_transport(), command=(sys.executable, "-c", "import time; time.sleep(10)"), cwd=tmp_path)

  result = await runner.run_test(Path("generated.spec.ts"), "job-4")

  assert result.passed is False
  assert result.summary == "Playwright run timed out"


@pytest.mark.anyio
async def test_missing_executable_is_a_failed_run(artifacts: JobArtifacts) -> None:
  runner = PlaywrightTestRunner(artifacts=artifacts, base_url="http://localhost:3000", transport=_ok_transport(), command=("replay2pr-no-such-binary",))
  result = await runner.run_test(Path("generated.spec.ts"), "job-5")
  assert result.passed is False
  assert result.output.startswith("Unable to start Playwright")


def test_build_test_runner_honours_configuration(settings_factory, artifacts: JobArtifacts) -> None:
  assert isinstance(build_test_runner(settings_factory(test_runner="simulated"), artifacts), SimulatedTestRunner)
  assert isinstance(build_test_runner(settings_factory(test_runner="playwright"), artifacts), PlaywrightTestRunner)
