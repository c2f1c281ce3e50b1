"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from replay2pr.services.jobs import ReplayJobService


def get_job_service(request: Request) -> ReplayJobService:
  """Return the engine built during application startup."""
  service = getattr(request.app.state, "job_service", None)
  if service is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Job engine is not ready.")
  return service
