from fastapi import APIRouter, Depends, HTTPException, status
from starlette.responses import Response

from replay2pr.api.deps import get_job_service
from replay2pr.api.msgspec_utils import encode_msgspec_response
from replay2pr.services.jobs import ReplayJobService

router = APIRouter()


@router.get("/{job_id}")
async def download_evidence(  # noqa: B008
  job_id: str,
  service: ReplayJobService = Depends(get_job_service),  # noqa: B008
) -> Response:
  """Download the evidence pack for a job as a JSON attachment."""
  job = await service.get_job(job_id)
  if job is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evidence not found")
  return encode_msgspec_response(job, headers={"Content-Disposition": f'attachment; filename="evidence-{job.id}.json"'}, indent=2)
