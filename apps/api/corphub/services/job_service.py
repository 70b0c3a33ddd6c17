"""Job service - scheduling and bookkeeping for the background job queue."""

from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from corphub.core.config import settings
from corphub.db.enums import JobStatus, JobType
from corphub.db.models import Job
from corphub.services.http_service import backoff_delay


def _now() -> datetime:
    return datetime.now(timezone.utc)


def schedule_job(
    db: Session,
    job_type: JobType,
    payload: dict,
    company_id: int | None = None,
    run_at: datetime | None = None,
    idempotency_key: str | None = None,
    max_attempts: int | None = None,
    commit: bool = True,
) -> Job:
    """
    Schedule a new background job.

    If run_at is None, the job runs immediately.

    With an idempotency_key there is at most one job per key: an existing
    job is re-armed (payload replaced, attempts reset, pending now) instead
    of inserting a duplicate.
    """
    if idempotency_key:
        existing = get_job_by_key(db, idempotency_key)
        if existing:
            existing.payload = payload
            existing.company_id = company_id
            existing.status = JobStatus.PENDING.value
            existing.attempts = 0
            existing.last_error = None
            existing.completed_at = None
            existing.run_at = run_at or _now()
            if max_attempts is not None:
                existing.max_attempts = max_attempts
            _flush(db, existing, commit)
            return existing

    job = Job(
        company_id=company_id,
        job_type=job_type.value,
        payload=payload,
        run_at=run_at or _now(),
        status=JobStatus.PENDING.value,
        attempts=0,
        max_attempts=max_attempts or settings.PROVIDER_SYNC_MAX_ATTEMPTS,
        idempotency_key=idempotency_key,
    )
    db.add(job)
    _flush(db, job, commit)
    return job


def _flush(db: Session, job: Job, commit: bool) -> None:
    if commit:
        db.commit()
        db.refresh(job)
    else:
        db.flush()


def get_job_by_key(db: Session, idempotency_key: str) -> Job | None:
    return db.query(Job).filter(Job.idempotency_key == idempotency_key).first()


def get_pending_jobs(db: Session, limit: int = 10) -> list[Job]:
    """
    Get pending jobs that are due to run.

    Returns jobs where status='pending' and run_at <= now, ordered by run_at.
    """
    return (
        db.query(Job)
        .filter(
            Job.status == JobStatus.PENDING.value,
            Job.run_at <= _now(),
        )
        .order_by(Job.run_at, Job.id)
        .limit(limit)
        .all()
    )


def get_job(db: Session, job_id: int, company_id: int | None = None) -> Job | None:
    """Get a job by ID, optionally scoped to a company."""
    query = db.query(Job).filter(Job.id == job_id)
    if company_id is not None:
        query = query.filter(Job.company_id == company_id)
    return query.first()


def list_jobs(
    db: Session,
    company_id: int | None = None,
    status: JobStatus | None = None,
    job_type: JobType | None = None,
    limit: int = 50,
) -> list[Job]:
    """List jobs (all companies when company_id is None) with optional filters."""
    query = db.query(Job)
    if company_id is not None:
        query = query.filter(Job.company_id == company_id)
    if status:
        query = query.filter(Job.status == status.value)
    if job_type:
        query = query.filter(Job.job_type == job_type.value)
    return query.order_by(Job.created_at.desc(), Job.id.desc()).limit(limit).all()


def mark_job_running(db: Session, job: Job) -> Job:
    """Mark a job as running (increment attempts)."""
    job.status = JobStatus.RUNNING.value
    job.attempts += 1
    db.commit()
    db.refresh(job)
    return job


def mark_job_completed(db: Session, job: Job) -> Job:
    """Mark a job as completed."""
    job.status = JobStatus.COMPLETED.value
    job.completed_at = _now()
    job.last_error = None
    db.commit()
    db.refresh(job)
    return job


def retry_delay_seconds(attempts: int) -> float:
    """Backoff before the next try, after `attempts` failed runs (no jitter)."""
    return backoff_delay(
        max(attempts - 1, 0),
        base_delay=settings.PROVIDER_SYNC_BASE_DELAY_SECONDS,
        max_delay=settings.PROVIDER_SYNC_MAX_DELAY_SECONDS,
        jitter=False,
    )


def mark_job_failed(db: Session, job: Job, error: str) -> Job:
    """
    Mark a job as failed.

    If attempts < max_attempts, reset to pending and push run_at out with
    exponential backoff; otherwise the job is failed for good.
    """
    job.last_error = error[:2000]
    if job.attempts < job.max_attempts:
        job.status = JobStatus.PENDING.value
        job.run_at = _now() + timedelta(seconds=retry_delay_seconds(job.attempts))
    else:
        job.status = JobStatus.FAILED.value
        job.completed_at = _now()
    db.commit()
    db.refresh(job)
    return job


def is_exhausted(job: Job) -> bool:
    return job.status == JobStatus.FAILED.value
