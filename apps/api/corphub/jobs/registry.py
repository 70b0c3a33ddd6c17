"""Job handler registry."""

from __future__ import annotations

from typing import Awaitable, Callable, Mapping

from corphub.db.enums import JobType
from corphub.jobs.handlers import provider_sync

JobHandler = Callable[..., Awaitable[None]]

JOB_HANDLERS: Mapping[str, JobHandler] = {
    JobType.PROVIDER_USER_SYNC.value: provider_sync.process_user_sync,
    JobType.PROVIDER_MEETING_CREATE.value: provider_sync.process_meeting_sync,
    JobType.PROVIDER_MEETING_UPDATE.value: provider_sync.process_meeting_sync,
    JobType.PROVIDER_MEETING_DELETE.value: provider_sync.process_meeting_delete,
}


def resolve_job_handler(job_type: str) -> JobHandler:
    handler = JOB_HANDLERS.get(job_type)
    if not handler:
        raise ValueError(f"Unknown job type: {job_type}")
    return handler
