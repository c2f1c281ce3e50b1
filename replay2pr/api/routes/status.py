from fastapi import APIRouter, Depends

from replay2pr.api.models import StatusResponse
from replay2pr.config import Settings, get_settings

router = APIRouter()


@router.get("", response_model=StatusResponse, response_model_by_alias=True)
async def get_status(settings: Settings = Depends(get_settings)) -> StatusResponse:  # noqa: B008
  """Report runtime capabilities to the UI."""
  return StatusResponse(mock_mode=settings.mock_inference, max_upload_mb=settings.max_upload_mb, max_concurrent_jobs=settings.max_concurrent_jobs)
