"""Pydantic schemas for background jobs."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class JobRead(BaseModel):
    """Job response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int | None
    job_type: str
    payload: dict
    run_at: datetime
    status: str
    attempts: int
    max_attempts: int
    last_error: str | None
    created_at: datetime
    completed_at: datetime | None
