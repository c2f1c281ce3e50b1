import logging

from fastapi import APIRouter, Depends, HTTPException, status
from starlette.responses import Response

from replay2pr.api.deps import get_job_service
from replay2pr.api.models import JobCreateRequest, JobCreateResponse
from replay2pr.api.msgspec_utils import encode_msgspec_response
from replay2pr.services.jobs import JobSubmission, ReplayJobService

router = APIRouter()
logger = logging.getLogger("replay2pr.api.routes.jobs")


@router.post("", response_model=JobCreateResponse, response_model_by_alias=True)
async def create_job(  # noqa: B008
  request: JobCreateRequest,
  service: ReplayJobService = Depends(get_job_service),  # noqa: B008
) -> JobCreateResponse:
  """Queue a replay job and return its share link."""
  submission = JobSubmission(demo_mode=request.demo_mode, upload_id=request.upload_id, upload_filename=request.upload_filename, notes=request.notes, repo_url=request.repo_url)
  job = await service.submit_job(submission)
  return JobCreateResponse(job_id=job.id, share_url=job.share_url)


@router.get("/{job_id}")
async def get_job(  # noqa: B008
  job_id: str,
  service: ReplayJobService = Depends(get_job_service),  # noqa: B008
) -> Response:
  """Return the latest persisted snapshot of a job."""
  job = await service.get_job(job_id)
  if job is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
  return encode_msgspec_response(job)
