"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal

from replay2pr.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

TestRunnerKind = Literal["playwright", "simulated"]
JobStoreKind = Literal["file", "postgres"]

_DEFAULT_FLASH_MODEL = "gemini-3-flash"
_DEFAULT_PRO_MODEL = "gemini-3-pro"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Replay2PR service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  artifacts_dir: Path
  max_concurrent_jobs: int
  max_upload_mb: int
  base_url: str
  test_runner: TestRunnerKind
  test_timeout_seconds: float
  reachability_timeout_seconds: float
  inference_max_retries: int
  inference_backoff_seconds: float
  job_store: JobStoreKind
  pg_dsn: str | None
  pg_connect_timeout: int
  demo_target_path: Path | None
  log_max_bytes: int
  log_backup_count: int
  gemini_api_key: str | None
  use_mock_gemini: bool
  gemini_model_flash: str
  gemini_model_pro: str

  @property
  def mock_inference(self) -> bool:
    """Return True when live inference is unavailable or disabled."""
    return self.gemini_api_key is None or self.use_mock_gemini


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "y", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  # Local development talks to the bundled UI on the default Next.js port.
  if not raw:
    return ("http://localhost:3000",)

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if "*" in origins:
    raise ValueError("REPLAY_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("REPLAY_ENV", "development").lower()
  debug = _parse_bool(os.getenv("REPLAY_DEBUG"))

  artifacts_dir = Path(os.getenv("REPLAY_ARTIFACTS_DIR", "./artifacts").strip()).resolve()

  max_concurrent_jobs = _positive_int("REPLAY_MAX_CONCURRENT_JOBS", "1")
  max_upload_mb = _positive_int("REPLAY_MAX_UPLOAD_MB", "50")

  # The Playwright config reads BASE_URL, so honour it when the service-specific name is unset.
  base_url = (os.getenv("REPLAY_BASE_URL") or os.getenv("BASE_URL") or "http://localhost:3000").strip()

  test_runner = (os.getenv("REPLAY_TEST_RUNNER") or "playwright").strip().lower()
  if test_runner not in {"playwright", "simulated"}:
    raise ValueError("REPLAY_TEST_RUNNER must be 'playwright' or 'simulated'.")

  test_timeout_seconds = _positive_float("REPLAY_TEST_TIMEOUT_SECONDS", "120")
  reachability_timeout_seconds = _positive_float("REPLAY_REACHABILITY_TIMEOUT_SECONDS", "10")

  inference_max_retries = int(os.getenv("REPLAY_INFERENCE_MAX_RETRIES", "2"))
  if inference_max_retries < 0:
    raise ValueError("REPLAY_INFERENCE_MAX_RETRIES must be zero or a positive integer.")

  inference_backoff_seconds = float(os.getenv("REPLAY_INFERENCE_BACKOFF_SECONDS", "1"))
  if inference_backoff_seconds < 0:
    raise ValueError("REPLAY_INFERENCE_BACKOFF_SECONDS must not be negative.")

  job_store = (os.getenv("REPLAY_JOB_STORE") or "file").strip().lower()
  if job_store not in {"file", "postgres"}:
    raise ValueError("REPLAY_JOB_STORE must be 'file' or 'postgres'.")

  # Support fallback to DATABASE_URL for hosted Postgres add-ons.
  pg_dsn = _optional_str(os.getenv("REPLAY_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))
  if job_store == "postgres" and not pg_dsn:
    raise ValueError("REPLAY_PG_DSN must be set when REPLAY_JOB_STORE is 'postgres'.")

  demo_target_raw = _optional_str(os.getenv("REPLAY_DEMO_TARGET_PATH"))
  # A real browser only sees patches written to the file the app at BASE_URL serves.
  if test_runner == "playwright" and not demo_target_raw:
    raise ValueError("REPLAY_DEMO_TARGET_PATH must point at the served demo form when REPLAY_TEST_RUNNER is 'playwright'.")
  # Jobs reset and patch a shared target in place, so they cannot overlap.
  if demo_target_raw and max_concurrent_jobs > 1:
    raise ValueError("REPLAY_MAX_CONCURRENT_JOBS must be 1 when REPLAY_DEMO_TARGET_PATH is shared between jobs.")

  log_max_bytes = _positive_int("REPLAY_LOG_MAX_BYTES", "5242880")
  log_backup_count = int(os.getenv("REPLAY_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("REPLAY_LOG_BACKUP_COUNT must be zero or a positive integer.")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("REPLAY_ALLOWED_ORIGINS")),
    artifacts_dir=artifacts_dir,
    max_concurrent_jobs=max_concurrent_jobs,
    max_upload_mb=max_upload_mb,
    base_url=base_url,
    test_runner=test_runner,  # type: ignore[arg-type]
    test_timeout_seconds=test_timeout_seconds,
    reachability_timeout_seconds=reachability_timeout_seconds,
    inference_max_retries=inference_max_retries,
    inference_backoff_seconds=inference_backoff_seconds,
    job_store=job_store,  # type: ignore[arg-type]
    pg_dsn=pg_dsn,
    pg_connect_timeout=_positive_int("REPLAY_PG_CONNECT_TIMEOUT", "5"),
    demo_target_path=Path(demo_target_raw).resolve() if demo_target_raw else None,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    use_mock_gemini=_parse_bool(os.getenv("USE_MOCK_GEMINI")),
    gemini_model_flash=_optional_str(os.getenv("GEMINI_MODEL_FLASH")) or _DEFAULT_FLASH_MODEL,
    gemini_model_pro=_optional_str(os.getenv("GEMINI_MODEL_PRO")) or _DEFAULT_PRO_MODEL,
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration."""
  # Keep database configuration isolated so migrations don't require unrelated env vars.
  debug = _parse_bool(os.getenv("REPLAY_DEBUG"))
  pg_connect_timeout = _positive_int("REPLAY_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = _optional_str(os.getenv("REPLAY_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)
