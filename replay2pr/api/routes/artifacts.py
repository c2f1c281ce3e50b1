import mimetypes

from fastapi import APIRouter, Depends, HTTPException, status
from starlette.responses import FileResponse

from replay2pr.config import Settings, get_settings
from replay2pr.services.artifacts import JobArtifacts

router = APIRouter()

# Generated tests and diffs are served as text so browsers display them inline.
_TEXT_SUFFIXES = {".ts": "text/plain; charset=utf-8", ".diff": "text/plain; charset=utf-8", ".log": "text/plain; charset=utf-8"}


@router.get("/{job_id}/{name}")
async def get_artifact(  # noqa: B008
  job_id: str,
  name: str,
  settings: Settings = Depends(get_settings),  # noqa: B008
) -> FileResponse:
  """Serve one file from a job's artifact directory."""
  artifacts = JobArtifacts(settings.artifacts_dir)
  try:
    path = artifacts.path(job_id, name)
  except ValueError as exc:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Artifact not found") from exc
  if not path.is_file():
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Artifact not found")
  media_type = _TEXT_SUFFIXES.get(path.suffix) or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
  return FileResponse(path, media_type=media_type)
