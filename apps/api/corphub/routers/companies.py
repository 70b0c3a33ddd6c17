"""Companies router - tenants and the organization chart."""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from corphub.core import permissions
from corphub.core.deps import get_current_session, get_db, require_roles
from corphub.db.enums import Role
from corphub.db.models import Company
from corphub.schemas.auth import UserSession
from corphub.schemas.company import CompanyCreate, CompanyRead, CompanyUpdate, OrgChart
from corphub.services import company_service

router = APIRouter()


def _get_company_or_404(db: Session, company_id: int) -> Company:
    company = company_service.get_company(db, company_id)
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    return company


@router.get("", response_model=list[CompanyRead])
def list_companies(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """All companies for super admins; everyone else sees their own."""
    if session.role == Role.SUPER_ADMIN:
        return company_service.list_companies(db)
    if session.company_id is None:
        return []
    return company_service.list_companies(db, company_id=session.company_id)


@router.get("/{company_id}", response_model=CompanyRead)
def get_company(
    company_id: int,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    company = _get_company_or_404(db, company_id)
    if not permissions.can_view_company(session, company_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    return company


@router.get("/{company_id}/org-chart", response_model=OrgChart)
def get_org_chart(
    company_id: int,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Company admins, managers with their reports, and unassigned employees."""
    company = _get_company_or_404(db, company_id)
    if not permissions.can_view_company(session, company_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    return company_service.build_org_chart(db, company)


@router.post(
    "",
    response_model=CompanyRead,
    status_code=201,
    dependencies=[Depends(require_roles([Role.SUPER_ADMIN]))],
)
def create_company(
    data: CompanyCreate,
    db: Session = Depends(get_db),
):
    return company_service.create_company(db, data.name, data.description)


@router.put("/{company_id}", response_model=CompanyRead)
def update_company(
    company_id: int,
    data: CompanyUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    company = _get_company_or_404(db, company_id)
    if not permissions.can_update_company(session, company_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    return company_service.update_company(db, company, data.model_dump(exclude_unset=True))


@router.delete(
    "/{company_id}",
    status_code=204,
    dependencies=[Depends(require_roles([Role.SUPER_ADMIN]))],
)
def delete_company(
    company_id: int,
    db: Session = Depends(get_db),
):
    """Delete a company together with its users, meetings and messages."""
    company = _get_company_or_404(db, company_id)
    company_service.delete_company(db, company)
    return Response(status_code=204)
