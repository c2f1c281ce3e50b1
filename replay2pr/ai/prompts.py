"""Prompt builders for the three inference calls."""

from __future__ import annotations

from replay2pr.ai.contracts import ReproDescription


def render_repro_prompt(*, notes: str, video_info: str) -> str:
  """Ask for a strict-JSON reproduction description."""
  return f"""You are a QA automation lead. Extract strict JSON with the following schema:
{{
  "summary": string,
  "steps": string[],
  "expected": string,
  "actual": string,
  "confidence": "low"|"medium"|"high"
}}
Video metadata: {video_info}
User notes: {notes or "(none)"}
Return only JSON."""


def render_test_prompt(*, repro: ReproDescription, base_url_hint: str) -> str:
  """Ask for a Playwright test that exercises the reproduction steps."""
  return f"""You are generating a Playwright test (TypeScript) for a Next.js demo app.
Constraints:
- Use @playwright/test
- Base URL: {base_url_hint}
- Target page: /demo
- Use data-testid selectors if possible
- Output strict JSON with schema {{ "testCode": string }}
Repro steps: {repro.model_dump_json(indent=2)}
Return only JSON."""


def render_patch_prompt(*, repro: ReproDescription, test_output: str, current_source: str, target_label: str) -> str:
  """Ask for a minimal unified diff against the target file."""
  return f"""You are a senior frontend engineer. Provide a unified diff patch ONLY for {target_label}.
Constraints:
- Keep changes minimal
- Fix the bug so the success banner appears after submit
- Output strict JSON with schema {{ "summary": string, "diff": string }}

Repro: {repro.model_dump_json(indent=2)}
Test output: {test_output}
Current file:
{current_source}

Return only JSON."""
