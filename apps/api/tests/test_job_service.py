from datetime import datetime, timedelta, timezone

from corphub.core.config import settings
from corphub.db.enums import JobStatus, JobType
from corphub.db.models import Job
from corphub.services import job_service


def _utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def test_schedule_job_runs_immediately_by_default(db, org):
    job = job_service.schedule_job(
        db,
        JobType.PROVIDER_USER_SYNC,
        {"user_id": org.employee.id},
        company_id=org.company.id,
    )

    assert job.status == JobStatus.PENDING.value
    assert job.attempts == 0
    assert job.max_attempts == settings.PROVIDER_SYNC_MAX_ATTEMPTS
    assert [j.id for j in job_service.get_pending_jobs(db)] == [job.id]


def test_future_jobs_are_not_due(db):
    job_service.schedule_job(
        db,
        JobType.PROVIDER_USER_SYNC,
        {"user_id": 1},
        run_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )
    assert job_service.get_pending_jobs(db) == []


def test_idempotency_key_rearms_existing_job(db):
    first = job_service.schedule_job(
        db,
        JobType.PROVIDER_MEETING_UPDATE,
        {"meeting_id": 1},
        idempotency_key="provider_meeting_update:1",
    )
    first.attempts = 3
    first.status = JobStatus.FAILED.value
    first.last_error = "boom"
    db.commit()

    second = job_service.schedule_job(
        db,
        JobType.PROVIDER_MEETING_UPDATE,
        {"meeting_id": 1, "note": "again"},
        idempotency_key="provider_meeting_update:1",
    )

    assert second.id == first.id
    assert db.query(Job).count() == 1
    assert second.status == JobStatus.PENDING.value
    assert second.attempts == 0
    assert second.last_error is None
    assert second.payload == {"meeting_id": 1, "note": "again"}


def test_failed_job_is_rescheduled_with_backoff(db):
    job = job_service.schedule_job(db, JobType.PROVIDER_USER_SYNC, {"user_id": 1}, max_attempts=3)
    job_service.mark_job_running(db, job)

    before = datetime.now(timezone.utc)
    job_service.mark_job_failed(db, job, "Zoom unreachable")

    assert job.status == JobStatus.PENDING.value
    assert job.attempts == 1
    assert job.last_error == "Zoom unreachable"
    delay = job_service.retry_delay_seconds(1)
    assert delay == settings.PROVIDER_SYNC_BASE_DELAY_SECONDS
    assert _utc(job.run_at) >= before + timedelta(seconds=delay - 1)
    assert job_service.get_pending_jobs(db) == []


def test_retry_delay_grows_and_caps():
    delays = [job_service.retry_delay_seconds(n) for n in range(1, 12)]
    assert delays == sorted(delays)
    assert delays[1] == 2 * delays[0]
    assert delays[-1] == settings.PROVIDER_SYNC_MAX_DELAY_SECONDS


def test_job_fails_for_good_after_max_attempts(db):
    job = job_service.schedule_job(db, JobType.PROVIDER_USER_SYNC, {"user_id": 1}, max_attempts=2)

    for _ in range(2):
        job_service.mark_job_running(db, job)
        job_service.mark_job_failed(db, job, "still down")

    assert job.status == JobStatus.FAILED.value
    assert job.completed_at is not None
    assert job_service.is_exhausted(job)


def test_mark_completed_clears_error(db):
    job = job_service.schedule_job(db, JobType.PROVIDER_USER_SYNC, {"user_id": 1})
    job_service.mark_job_running(db, job)
    job_service.mark_job_failed(db, job, "transient")
    job_service.mark_job_running(db, job)
    job_service.mark_job_completed(db, job)

    assert job.status == JobStatus.COMPLETED.value
    assert job.last_error is None
    assert job.attempts == 2


def test_list_jobs_filters(db, org):
    job_service.schedule_job(
        db, JobType.PROVIDER_USER_SYNC, {"user_id": 1}, company_id=org.company.id
    )
    job_service.schedule_job(
        db, JobType.PROVIDER_MEETING_CREATE, {"meeting_id": 1}, company_id=org.company.id
    )
    job_service.schedule_job(
        db, JobType.PROVIDER_USER_SYNC, {"user_id": 2}, company_id=org.outside_company.id
    )

    assert len(job_service.list_jobs(db)) == 3
    assert len(job_service.list_jobs(db, company_id=org.company.id)) == 2
    scoped = job_service.list_jobs(
        db, company_id=org.company.id, job_type=JobType.PROVIDER_MEETING_CREATE
    )
    assert [j.payload for j in scoped] == [{"meeting_id": 1}]
    assert job_service.list_jobs(db, status=JobStatus.FAILED) == []
