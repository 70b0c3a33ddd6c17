"""Users router - role-scoped user administration and contact lists."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from corphub.core import permissions
from corphub.core.deps import get_current_session, get_db, require_roles
from corphub.core.structured_logging import build_log_context
from corphub.db.enums import ROLES_CAN_CREATE_USERS, Role
from corphub.db.models import User
from corphub.schemas.auth import UserSession
from corphub.schemas.user import (
    ContactRead,
    RoleUpdate,
    UserCreate,
    UserCreateResponse,
    UserRead,
    UserUpdate,
)
from corphub.services import provider_sync_service, user_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = user_service.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _with_warning(user: User) -> UserCreateResponse:
    response = UserCreateResponse.model_validate(user)
    response.warning = provider_sync_service.sync_warning(user.provider_sync_status)
    return response


@router.get("", response_model=list[UserRead])
def list_users(
    company_id: int | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    List users in the caller's scope.

    Super admins see everyone (optionally one company), company admins
    their company, managers and employees their contacts.
    """
    return user_service.list_users(db, session, company_id=company_id)


@router.get("/contacts", response_model=list[ContactRead])
def list_contacts(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Users the caller may message."""
    return user_service.list_contacts(db, session)


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: int,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)
    if not permissions.can_view_user(session, user):
        raise HTTPException(status_code=403, detail="Forbidden")
    return user


@router.post("", response_model=UserCreateResponse, status_code=201)
def create_user(
    data: UserCreate,
    session: UserSession = Depends(require_roles(list(ROLES_CAN_CREATE_USERS))),
    db: Session = Depends(get_db),
):
    """
    Create a user (super admin, or company admin within their company).

    The user is committed even when the Zoom account cannot be created
    right away; the response then carries a warning and the sync retries.
    """
    fields = data.model_dump()
    if session.role == Role.COMPANY_ADMIN and fields["company_id"] is None:
        fields["company_id"] = session.company_id

    reason = permissions.can_create_user(session, fields["company_id"], data.role)
    if reason:
        raise HTTPException(status_code=403, detail=reason)

    try:
        user = user_service.create_user(db, **fields)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        "User created",
        extra=build_log_context(user_id=session.user_id, company_id=user.company_id),
    )
    return _with_warning(user)


@router.put("/{user_id}", response_model=UserCreateResponse)
def update_user(
    user_id: int,
    data: UserUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    target = _get_user_or_404(db, user_id)
    changes = data.model_dump(exclude_unset=True)

    reason = permissions.check_user_update(session, target, changes)
    if reason:
        raise HTTPException(status_code=403, detail=reason)

    try:
        user = user_service.update_user(db, target, changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _with_warning(user)


@router.put("/{user_id}/role", response_model=UserRead)
def change_role(
    user_id: int,
    data: RoleUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Change a user's role. Nobody may change their own role."""
    target = _get_user_or_404(db, user_id)

    reason = permissions.check_role_change(session, target, data.role)
    if reason:
        raise HTTPException(status_code=403, detail=reason)

    try:
        return user_service.change_role(db, target, data.role)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: int,
    session: UserSession = Depends(require_roles(list(ROLES_CAN_CREATE_USERS))),
    db: Session = Depends(get_db),
):
    target = _get_user_or_404(db, user_id)

    reason = permissions.check_user_delete(session, target)
    if reason:
        raise HTTPException(status_code=403, detail=reason)

    user_service.delete_user(db, target)
    return Response(status_code=204)


@router.post("/{user_id}/provider-sync", response_model=UserCreateResponse)
def retry_provider_sync(
    user_id: int,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Re-queue the Zoom account sync (self, own company admin or super admin)."""
    target = _get_user_or_404(db, user_id)

    allowed = (
        session.user_id == target.id
        or session.role == Role.SUPER_ADMIN
        or (session.role == Role.COMPANY_ADMIN and permissions.same_company(session, target))
    )
    if not allowed:
        raise HTTPException(status_code=403, detail="Forbidden")

    provider_sync_service.queue_user_sync(db, target)
    db.refresh(target)
    return _with_warning(target)
