"""
Provider (Zoom) sync outbox.

Local rows are the source of truth. Writes persist the row first, then
queue a job here; the worker runs the job against Zoom and retries with
backoff. Each entity's provider_sync_status says where it stands:

    skipped  - Zoom not configured, nothing queued
    pending  - job queued or retrying
    synced   - Zoom copy matches
    failed   - retries exhausted (provider_sync_error has the last error)
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from corphub.core.config import settings
from corphub.db.enums import JobType, SyncStatus
from corphub.db.models import Job, Meeting, User
from corphub.services import job_service
from corphub.services.zoom_service import ZoomAPIError, ZoomClient

logger = logging.getLogger(__name__)

PENDING_WARNING = "Saved, but Zoom sync has not completed yet; it will be retried automatically."


def sync_warning(status: str) -> str | None:
    """Soft warning for API responses while the provider copy is not in sync."""
    if status == SyncStatus.PENDING.value:
        return PENDING_WARNING
    if status == SyncStatus.FAILED.value:
        return "Saved, but Zoom sync failed. Retry it from the user or meeting."
    return None


# =============================================================================
# Enqueue
# =============================================================================

def queue_user_sync(db: Session, user: User, commit: bool = True) -> Job | None:
    """Queue creation/linking of the user's Zoom account."""
    if not settings.zoom_enabled:
        user.provider_sync_status = SyncStatus.SKIPPED.value
        if commit:
            db.commit()
        return None

    user.provider_sync_status = SyncStatus.PENDING.value
    user.provider_sync_error = None
    return job_service.schedule_job(
        db,
        JobType.PROVIDER_USER_SYNC,
        {"user_id": user.id},
        company_id=user.company_id,
        idempotency_key=f"{JobType.PROVIDER_USER_SYNC.value}:{user.id}",
        commit=commit,
    )


def queue_meeting_sync(db: Session, meeting: Meeting, commit: bool = True) -> Job | None:
    """Queue a create (no Zoom handle yet) or update of the meeting's Zoom copy."""
    if not settings.zoom_enabled:
        meeting.provider_sync_status = SyncStatus.SKIPPED.value
        if commit:
            db.commit()
        return None

    job_type = (
        JobType.PROVIDER_MEETING_UPDATE
        if meeting.zoom_meeting_id
        else JobType.PROVIDER_MEETING_CREATE
    )
    meeting.provider_sync_status = SyncStatus.PENDING.value
    meeting.provider_sync_error = None
    return job_service.schedule_job(
        db,
        job_type,
        {"meeting_id": meeting.id},
        company_id=meeting.company_id,
        idempotency_key=f"{job_type.value}:{meeting.id}",
        commit=commit,
    )


def queue_meeting_delete(db: Session, meeting: Meeting, commit: bool = True) -> Job | None:
    """
    Queue deletion of the meeting's Zoom copy.

    The payload carries the Zoom handle itself, so the job still works
    after the local row is gone.
    """
    if not meeting.zoom_meeting_id or not settings.zoom_enabled:
        return None
    return job_service.schedule_job(
        db,
        JobType.PROVIDER_MEETING_DELETE,
        {"meeting_id": meeting.id, "zoom_meeting_id": meeting.zoom_meeting_id},
        company_id=meeting.company_id,
        idempotency_key=f"{JobType.PROVIDER_MEETING_DELETE.value}:{meeting.zoom_meeting_id}",
        commit=commit,
    )


def requeue_failed(db: Session) -> int:
    """Re-queue every user and meeting whose sync ended failed. Returns the count."""
    count = 0
    failed = SyncStatus.FAILED.value
    for user in db.query(User).filter(User.provider_sync_status == failed).all():
        queue_user_sync(db, user, commit=False)
        count += 1
    for meeting in db.query(Meeting).filter(Meeting.provider_sync_status == failed).all():
        queue_meeting_sync(db, meeting, commit=False)
        count += 1
    db.commit()
    return count


# =============================================================================
# Run (called by the worker through the job registry)
# =============================================================================

async def sync_user(db: Session, user_id: int, zoom: ZoomClient) -> None:
    """Link the user to an existing Zoom account by email, or create one."""
    user = db.get(User, user_id)
    if user is None:
        logger.info("Provider user sync skipped, user %s no longer exists", user_id)
        return

    zoom_user = await zoom.get_user_by_email(user.email)
    if zoom_user:
        logger.info("Linking user %s to existing Zoom account", user.id)
    else:
        zoom_user = await zoom.create_user(user.email, user.first_name, user.last_name)
        logger.info("Created Zoom account for user %s", user.id)

    user.zoom_user_id = zoom_user.get("id")
    user.zoom_email = zoom_user.get("email") or user.email
    user.zoom_pmi = zoom_user.get("pmi")
    user.zoom_created_at = _parse_provider_time(zoom_user.get("created_at"))
    user.provider_sync_status = SyncStatus.SYNCED.value
    user.provider_sync_error = None
    db.commit()


async def sync_meeting(db: Session, meeting_id: int, zoom: ZoomClient) -> None:
    """Create the Zoom meeting, or push local changes to the existing one."""
    meeting = db.get(Meeting, meeting_id)
    if meeting is None:
        logger.info("Provider meeting sync skipped, meeting %s no longer exists", meeting_id)
        return

    start_time = _as_utc(meeting.start_time).strftime("%Y-%m-%dT%H:%M:%SZ")

    if meeting.zoom_meeting_id:
        await zoom.update_meeting(
            meeting.zoom_meeting_id,
            {
                "topic": meeting.title,
                "agenda": meeting.description or "",
                "start_time": start_time,
                "duration": meeting.duration_minutes,
                "timezone": "UTC",
            },
        )
    else:
        data = await zoom.create_meeting(
            topic=meeting.title,
            start_time=start_time,
            duration=meeting.duration_minutes,
            agenda=meeting.description,
        )
        meeting.zoom_meeting_id = str(data["id"])
        meeting.zoom_password = data.get("password")
        meeting.zoom_join_url = data.get("join_url")

    meeting.provider_sync_status = SyncStatus.SYNCED.value
    meeting.provider_sync_error = None
    db.commit()


async def delete_meeting(zoom_meeting_id: str, zoom: ZoomClient) -> None:
    """Delete the Zoom copy; an already-deleted meeting counts as done."""
    try:
        await zoom.delete_meeting(zoom_meeting_id)
    except ZoomAPIError as exc:
        if exc.status_code == 404:
            logger.info("Zoom meeting already gone")
            return
        raise


def record_failure(db: Session, job: Job, error: str) -> None:
    """
    Reflect a failed attempt on the entity behind the job.

    The error is always recorded; the status turns failed only once the
    job has no attempts left.
    """
    payload = job.payload or {}
    entity: User | Meeting | None = None
    if job.job_type == JobType.PROVIDER_USER_SYNC.value and payload.get("user_id"):
        entity = db.get(User, payload["user_id"])
    elif job.job_type in (
        JobType.PROVIDER_MEETING_CREATE.value,
        JobType.PROVIDER_MEETING_UPDATE.value,
    ) and payload.get("meeting_id"):
        entity = db.get(Meeting, payload["meeting_id"])

    if entity is None:
        return

    entity.provider_sync_error = error[:2000]
    if job_service.is_exhausted(job):
        entity.provider_sync_status = SyncStatus.FAILED.value
    db.commit()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_provider_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
