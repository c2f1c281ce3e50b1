"""HTTP routers."""

from replay2pr.api.routes import artifacts, evidence, jobs, status

__all__ = ["artifacts", "evidence", "jobs", "status"]
