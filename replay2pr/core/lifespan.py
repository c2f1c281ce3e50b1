import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from replay2pr.core.database import dispose_engine
from replay2pr.core.logging import initialize_logging
from replay2pr.services.jobs import build_job_service

# Jobs still running after this long are failed by recovery on the next start.
_SHUTDOWN_GRACE_SECONDS = 30.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Build the job engine, recover persisted jobs and drain on shutdown."""
  from replay2pr.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("replay2pr.core.lifespan")
  initialize_logging(settings)

  service = build_job_service(settings)
  app.state.job_service = service
  report = await service.recover()
  logger.info("Startup complete - requeued=%s interrupted=%s", report.requeued, report.interrupted)

  try:
    yield
  finally:
    try:
      await asyncio.wait_for(service.dispatcher.wait_idle(), timeout=_SHUTDOWN_GRACE_SECONDS)
    except TimeoutError:
      logger.warning("Shutting down with jobs still running active=%s queued=%s", service.dispatcher.active_count, len(service.dispatcher.queued_ids))
    if settings.job_store == "postgres":
      await dispose_engine()
