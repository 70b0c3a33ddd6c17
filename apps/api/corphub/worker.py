"""
Background worker for processing scheduled jobs.

Usage:
    python -m corphub.worker

The worker polls for pending jobs (provider sync outbox) and processes them.
For production, run this as a separate process next to the API.
"""

import asyncio
import logging

from corphub.core.config import settings
from corphub.core.structured_logging import build_log_context
from corphub.db.session import SessionLocal
from corphub.jobs.registry import resolve_job_handler
from corphub.services import job_service, provider_sync_service
from corphub.services.zoom_service import ZoomClient

logger = logging.getLogger(__name__)


async def process_job(db, job, zoom: ZoomClient | None = None) -> None:
    """Process a single job based on its type."""
    logger.info(
        "Processing job %s (type=%s, attempt=%s)",
        job.id,
        job.job_type,
        job.attempts,
        extra=build_log_context(company_id=job.company_id),
    )
    handler = resolve_job_handler(job.job_type)
    await handler(db, job, zoom=zoom)


async def run_pending_jobs(db, zoom: ZoomClient | None = None, limit: int | None = None) -> int:
    """
    Run one batch of due jobs. Returns how many were picked up.

    A failing job is rescheduled with backoff; once out of attempts it is
    marked failed and the entity it syncs is marked failed too.
    """
    jobs = job_service.get_pending_jobs(db, limit=limit or settings.WORKER_BATCH_SIZE)
    if jobs:
        logger.info("Found %d pending jobs", len(jobs))

    for job in jobs:
        try:
            job_service.mark_job_running(db, job)
            await process_job(db, job, zoom=zoom)
            job_service.mark_job_completed(db, job)
            logger.info("Job %s completed successfully", job.id)
        except Exception as e:
            db.rollback()
            error_msg = str(e) or type(e).__name__
            job_service.mark_job_failed(db, job, error_msg)
            logger.warning(
                "Job %s failed (attempt %s/%s): %s",
                job.id,
                job.attempts,
                job.max_attempts,
                type(e).__name__,
            )
            provider_sync_service.record_failure(db, job, error_msg)

    return len(jobs)


async def worker_loop() -> None:
    """Main worker loop - polls for and processes pending jobs."""
    logger.info(
        "Worker starting (poll interval: %ss, batch size: %s)",
        settings.WORKER_POLL_INTERVAL,
        settings.WORKER_BATCH_SIZE,
    )

    if not settings.zoom_enabled:
        logger.warning("Zoom credentials not set - provider sync jobs will fail until configured")

    while True:
        with SessionLocal() as db:
            try:
                await run_pending_jobs(db)
            except Exception as e:
                logger.error("Error in worker loop: %s", type(e).__name__)

        await asyncio.sleep(settings.WORKER_POLL_INTERVAL)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    asyncio.run(worker_loop())


if __name__ == "__main__":
    main()
