"""Deterministic responses used in demo mode and after a fallback demotion."""

from __future__ import annotations

from replay2pr.ai.contracts import GeneratedTest, PatchPlan, ReproDescription
from replay2pr.services.patcher import create_unified_diff

DEMO_REPRO = ReproDescription(
  summary="Submitting the replay form never shows the success banner.",
  steps=["Open the demo page at /demo", "Fill out the Name, Issue ID, and Steps fields", "Click 'Send Replay Report'", "Observe that the success banner never appears"],
  expected="A success banner and Sent status should appear.",
  actual="The status returns to Draft and no success banner shows.",
  confidence="high",
)

DEMO_TEST_CODE = """import { test, expect } from "@playwright/test";

test("replay form should show success banner", async ({ page }) => {
  await page.goto("/demo");
  await page.getByTestId("name-input").fill("Ava Pilot");
  await page.getByTestId("issue-input").fill("RPL-102");
  await page.getByTestId("steps-input").fill("Click the submit button");
  await page.getByTestId("submit-button").click();
  await expect(page.getByTestId("success-banner")).toBeVisible();
  await expect(page.getByTestId("status-chip")).toHaveText(/Sent/i);
});
"""

MOCK_PATCH_SUMMARY = "Flip submitted state to true and update status to Sent."


def mock_repro() -> ReproDescription:
  return DEMO_REPRO.model_copy(deep=True)


def mock_test() -> GeneratedTest:
  return GeneratedTest(test_code=DEMO_TEST_CODE)


def mock_patch(current_source: str, target_label: str) -> PatchPlan:
  """Patch the known demo bug; yields an empty diff when the source is already fixed."""
  after = current_source.replace("setSubmitted(false)", "setSubmitted(true)", 1).replace('setStatus("Draft")', 'setStatus("Sent")', 1)
  return PatchPlan(summary=MOCK_PATCH_SUMMARY, diff=create_unified_diff(target_label, current_source, after))
