"""Five-stage replay pipeline: extract, reproduce, patch, verify, ship."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import TypeVar

from starlette.concurrency import run_in_threadpool

from replay2pr.ai.contracts import PatchPlan, ReproDescription
from replay2pr.ai.fallback import InferencePolicy, RunContext
from replay2pr.ai.inference import ReplayInference
from replay2pr.jobs.models import Evidence, JobRecord, StepId, VerifyResult
from replay2pr.jobs.progress import StepTracker
from replay2pr.services.artifacts import JobArtifacts, placeholder_svg
from replay2pr.services.demo_target import DemoTarget, demo_target_for_job
from replay2pr.services.patcher import apply_unified_diff, create_unified_diff
from replay2pr.services.test_runner import RunResult, TestRunner
from replay2pr.storage.jobs_repo import JobsRepository

T = TypeVar("T")
logger = logging.getLogger(__name__)

PATCH_ATTEMPT_LIMIT = 2

REPRO_FILENAME = "repro.json"
TEST_FILENAME = "generated.spec.ts"
DIFF_FILENAME = "patch.diff"
BEFORE_FILENAME = "before.svg"
AFTER_FILENAME = "after.svg"

REPO_DISABLED_NOTE = "Repo mode is disabled in this build. Running the demo pipeline instead."
REPO_FALLBACK_NOTE = "Repo mode is disabled without a repo URL. Falling back to the demo pipeline."
DEMO_MOCK_NOTE = "Demo mode uses deterministic mock responses for reproducibility."


class ReplayPipeline:
  """Drive one job through its steps, persisting after every transition."""

  def __init__(self, *, jobs_repo: JobsRepository, inference: ReplayInference, policy: InferencePolicy, test_runner: TestRunner, artifacts: JobArtifacts, base_url: str, demo_target_path: Path | None = None, clock: Callable[[], datetime] = datetime.now) -> None:
    self._jobs_repo = jobs_repo
    self._inference = inference
    self._policy = policy
    self._test_runner = test_runner
    self._artifacts = artifacts
    self._base_url = base_url
    self._demo_target_path = demo_target_path
    self._clock = clock

  async def run(self, job: JobRecord) -> JobRecord:
    """Run every stage; any uncaught error aborts the remaining ones."""
    tracker = StepTracker(job=job, jobs_repo=self._jobs_repo, clock=self._clock)
    logger.info("Pipeline started job_id=%s mode=%s", job.id, job.mode)
    try:
      await self._execute(tracker)
    except Exception as exc:
      logger.exception("Pipeline aborted job_id=%s", job.id)
      await tracker.abort(str(exc) or type(exc).__name__)
    logger.info("Pipeline finished job_id=%s status=%s patch_attempts=%s", job.id, job.status, job.patch_attempts)
    return job

  async def _execute(self, tracker: StepTracker) -> None:
    job = tracker.job
    job_dir = self._artifacts.job_dir(job.id)
    # Every run starts from a fresh artifact directory and the buggy template.
    await run_in_threadpool(job_dir.mkdir, parents=True, exist_ok=True)
    target = demo_target_for_job(job_dir, self._demo_target_path)
    await target.reset()
    job.patch_attempts = 0

    # Decide the inference mode once; the context only ever moves towards fallback.
    repo_fallback = job.mode == "repo" and not job.repo_url
    repo_disabled = job.mode == "demo" and bool(job.repo_url)
    use_fallback = job.mode == "demo" or repo_fallback or not self._inference.live_available
    context = RunContext(job_id=job.id, fallback=use_fallback)

    # The "before" evidence exists from the start so aborted runs still show it.
    await run_in_threadpool(self._artifacts.write_text, job.id, BEFORE_FILENAME, placeholder_svg("Before Patch"))
    job.evidence = Evidence(before_image=self._artifacts.url(job.id, BEFORE_FILENAME))

    repro = await self._extract(tracker, context, repo_disabled=repo_disabled, repo_fallback=repo_fallback)
    test_path, repro_run = await self._reproduce(tracker, context, repro)
    await self._patch(tracker, context, repro, repro_run, target)
    verify_run = await self._verify(tracker, context, repro, test_path, target)
    await self._ship(tracker, verify_run)

  async def _extract(self, tracker: StepTracker, context: RunContext, *, repo_disabled: bool, repo_fallback: bool) -> ReproDescription:
    job = tracker.job
    await tracker.start("extract")
    # Mode notes explain up front why this run will not call Gemini.
    if repo_disabled:
      await tracker.log("extract", REPO_DISABLED_NOTE)
    if repo_fallback:
      await tracker.log("extract", REPO_FALLBACK_NOTE)
    if context.fallback:
      await tracker.log("extract", DEMO_MOCK_NOTE)
    await tracker.log("extract", "Analyzing video metadata and notes with Gemini...")

    # The upload is opaque here; its filename stands in for the video.
    notes = job.notes or ""
    video_info = job.upload_filename or job.upload_id
    repro = await self._infer(
      tracker,
      context,
      "extract",
      live=lambda: self._inference.extract_repro_steps(notes, video_info),
      fallback=lambda: self._inference.extract_repro_steps(notes, video_info, force_fallback=True),
    )
    # Persist the structured repro next to the job record.
    job.repro_steps = list(repro.steps)
    await run_in_threadpool(self._artifacts.write_json, job.id, REPRO_FILENAME, repro.model_dump())
    await tracker.log("extract", f"Captured {len(repro.steps)} reproduction steps.")
    await tracker.finish("extract", "success", repro.summary)
    return repro

  async def _reproduce(self, tracker: StepTracker, context: RunContext, repro: ReproDescription) -> tuple[Path, RunResult]:
    job = tracker.job
    await tracker.start("reproduce")
    await tracker.log("reproduce", "Generating Playwright test...")
    generated = await self._infer(
      tracker,
      context,
      "reproduce",
      live=lambda: self._inference.generate_playwright_test(repro, self._base_url),
      fallback=lambda: self._inference.generate_playwright_test(repro, self._base_url, force_fallback=True),
    )
    # Keep the generated test on disk; the runner executes it by path.
    test_path = await run_in_threadpool(self._artifacts.write_text, job.id, TEST_FILENAME, generated.test_code)
    job.test_file = self._artifacts.relative(test_path)
    job.test_code = generated.test_code

    await tracker.log("reproduce", "Running Playwright against the demo target...")
    # Run against the unpatched target.
    run = await self._test_runner.run_test(test_path, job.id)
    # An unreachable target also counts as reproduced here.
    summary = "Test passed unexpectedly (bug not reproduced)." if run.passed else "Test failed as expected. Bug reproduced."
    await tracker.log("reproduce", summary)
    await tracker.finish("reproduce", "success", summary)
    return test_path, run

  async def _patch(self, tracker: StepTracker, context: RunContext, repro: ReproDescription, repro_run: RunResult, target: DemoTarget) -> None:
    await tracker.start("patch")
    await tracker.log("patch", "Requesting patch plan from Gemini...")
    # First attempt; verify may spend the remaining one.
    plan = await self._apply_patch_attempt(tracker, context, "patch", repro, repro_run.output, target)
    await tracker.finish("patch", "success", plan.summary)

  async def _verify(self, tracker: StepTracker, context: RunContext, repro: ReproDescription, test_path: Path, target: DemoTarget) -> RunResult:
    job = tracker.job
    await tracker.start("verify")
    await tracker.log("verify", "Re-running Playwright after patch...")
    # First run against the patched target.
    run = await self._test_runner.run_test(test_path, job.id)

    # Retry with a fresh patch until the test passes or the attempt budget is spent.
    while not run.passed and job.patch_attempts < PATCH_ATTEMPT_LIMIT:
      await tracker.log("verify", "Patch did not resolve. Attempting second patch...")
      await self._apply_patch_attempt(tracker, context, "verify", repro, run.output, target)
      run = await self._test_runner.run_test(test_path, job.id)

    # A failed verify is recorded, not raised; ship still runs.
    job.verify = VerifyResult(passed=run.passed, summary=run.summary, output=run.output)
    await tracker.log("verify", run.summary)
    await tracker.finish("verify", "success" if run.passed else "error", run.summary)
    return run

  async def _ship(self, tracker: StepTracker, verify_run: RunResult) -> None:
    job = tracker.job
    await tracker.start("ship")
    # Complete the evidence pack with the "after" placeholder.
    await run_in_threadpool(self._artifacts.write_text, job.id, AFTER_FILENAME, placeholder_svg("After Patch"))
    before_image = job.evidence.before_image if job.evidence else None
    job.evidence = Evidence(before_image=before_image, after_image=self._artifacts.url(job.id, AFTER_FILENAME))
    await tracker.log("ship", "Packaged evidence artifacts.")

    summary = "Patch verified. Evidence pack ready." if verify_run.passed else "Patch failed to verify."
    # Job status and the terminal ship step land in the same write.
    job.status = "success" if verify_run.passed else "error"
    await tracker.finish("ship", "success" if verify_run.passed else "error", summary)

  async def _apply_patch_attempt(self, tracker: StepTracker, context: RunContext, step_id: StepId, repro: ReproDescription, test_output: str, target: DemoTarget) -> PatchPlan:
    """Request, apply and record one patch against the latest target source."""
    job = tracker.job
    # Always patch the latest source, which may already carry an earlier attempt.
    current_source = await target.read()
    plan = await self._infer(
      tracker,
      context,
      step_id,
      live=lambda: self._inference.generate_patch(repro, test_output, current_source, target.label),
      fallback=lambda: self._inference.generate_patch(repro, test_output, current_source, target.label, force_fallback=True),
    )
    await tracker.log(step_id, plan.summary)
    # A diff that does not apply raises and aborts the job.
    patched_source = apply_unified_diff(current_source, plan.diff)
    await target.write(patched_source)

    # Record the diff that was actually applied, not the one the model proposed.
    diff = create_unified_diff(target.label, current_source, patched_source)
    await run_in_threadpool(self._artifacts.write_text, job.id, DIFF_FILENAME, diff)
    job.patch_diff = diff
    job.patch_summary = plan.summary
    job.patch_attempts += 1
    await tracker.persist()
    return plan

  async def _infer(self, tracker: StepTracker, context: RunContext, step_id: StepId, *, live: Callable[[], Awaitable[T]], fallback: Callable[[], Awaitable[T]]) -> T:
    return await self._policy.call(context, live=live, fallback=fallback, log=tracker.logger_for(step_id))
