"""Company service - tenant CRUD and the organization chart."""

from sqlalchemy.orm import Session

from corphub.db.enums import Role
from corphub.db.models import Company, Meeting, User
from corphub.schemas.company import CompanyRead, OrgChart, OrgChartNode
from corphub.services import provider_sync_service


def get_company(db: Session, company_id: int) -> Company | None:
    """Get company by ID."""
    return db.query(Company).filter(Company.id == company_id).first()


def list_companies(db: Session, company_id: int | None = None) -> list[Company]:
    """All companies, or only the given one."""
    query = db.query(Company).order_by(Company.id)
    if company_id is not None:
        query = query.filter(Company.id == company_id)
    return query.all()


def create_company(db: Session, name: str, description: str | None = None) -> Company:
    company = Company(name=name, description=description)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def update_company(db: Session, company: Company, changes: dict) -> Company:
    if changes.get("name") is not None:
        company.name = changes["name"]
    if "description" in changes:
        company.description = changes["description"]
    db.commit()
    db.refresh(company)
    return company


def delete_company(db: Session, company: Company) -> None:
    """
    Delete a company with its users, meetings and their messages.

    Zoom copies of the company's meetings are queued for deletion; those
    jobs are detached from the company so they survive the cascade.
    """
    meetings = db.query(Meeting).filter(Meeting.company_id == company.id).all()
    for meeting in meetings:
        job = provider_sync_service.queue_meeting_delete(db, meeting, commit=False)
        if job is not None:
            job.company_id = None
    db.delete(company)
    db.commit()


def build_org_chart(db: Session, company: Company) -> OrgChart:
    """
    Build the company hierarchy.

    Company admins on top, each manager with their direct reports, and
    employees without a manager listed as unassigned.
    """
    members = (
        db.query(User)
        .filter(User.company_id == company.id)
        .order_by(User.last_name, User.first_name, User.id)
        .all()
    )

    def node(user: User, reports: list[OrgChartNode] | None = None) -> OrgChartNode:
        return OrgChartNode(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            role=Role(user.role),
            reports=reports or [],
        )

    reports_by_manager: dict[int, list[OrgChartNode]] = {}
    unassigned: list[OrgChartNode] = []
    for user in members:
        if user.role != Role.EMPLOYEE.value:
            continue
        if user.manager_id is None:
            unassigned.append(node(user))
        else:
            reports_by_manager.setdefault(user.manager_id, []).append(node(user))

    return OrgChart(
        company=CompanyRead.model_validate(company),
        company_admins=[node(u) for u in members if u.role == Role.COMPANY_ADMIN.value],
        managers=[
            node(u, reports_by_manager.get(u.id, []))
            for u in members
            if u.role == Role.MANAGER.value
        ],
        unassigned=unassigned,
    )
