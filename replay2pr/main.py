from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from replay2pr import __version__
from replay2pr.api.routes import artifacts, evidence, jobs, status
from replay2pr.config import get_settings
from replay2pr.core.exceptions import global_exception_handler, http_exception_handler, job_validation_exception_handler, request_validation_exception_handler
from replay2pr.core.lifespan import lifespan
from replay2pr.core.middleware import RequestLoggingMiddleware
from replay2pr.jobs.errors import JobValidationError

settings = get_settings()

app = FastAPI(title="Replay2PR", version=__version__, lifespan=lifespan)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type"], expose_headers=["content-disposition", "x-request-id"])

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(JobValidationError, job_validation_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
app.include_router(evidence.router, prefix="/api/evidence", tags=["evidence"])
app.include_router(artifacts.router, prefix="/api/artifacts/jobs", tags=["artifacts"])
app.include_router(status.router, prefix="/api/status", tags=["status"])
