"""Jobs router - provider sync outbox status (admins only)."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from corphub.core.deps import get_db, require_roles
from corphub.db.enums import ROLES_CAN_VIEW_JOBS, JobStatus, JobType, Role
from corphub.schemas.auth import UserSession
from corphub.schemas.job import JobRead
from corphub.services import job_service

router = APIRouter(tags=["Jobs"])


def _scope(session: UserSession) -> int | None:
    # Company admins only see their own company's jobs
    if session.role == Role.SUPER_ADMIN:
        return None
    return session.company_id if session.company_id is not None else -1


@router.get("", response_model=list[JobRead])
def list_jobs(
    status: JobStatus | None = None,
    job_type: JobType | None = None,
    limit: int = 50,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles(list(ROLES_CAN_VIEW_JOBS))),
):
    """List recent provider sync jobs (super admin: all, company admin: own company)."""
    return job_service.list_jobs(
        db,
        company_id=_scope(session),
        status=status,
        job_type=job_type,
        limit=min(limit, 100),
    )


@router.get("/{job_id}", response_model=JobRead)
def get_job(
    job_id: int,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_roles(list(ROLES_CAN_VIEW_JOBS))),
):
    job = job_service.get_job(db, job_id, company_id=_scope(session))
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job
