"""Authentication router: registration, login and the current session."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from corphub.core.deps import get_current_session, get_db
from corphub.core.rate_limit import AUTH_LIMIT, limiter
from corphub.core.security import create_token_for_user
from corphub.core.structured_logging import build_log_context
from corphub.db.enums import Role
from corphub.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, UserSession
from corphub.schemas.user import UserRead
from corphub.services import provider_sync_service, user_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=201)
@limiter.limit(AUTH_LIMIT)
def register(
    request: Request,
    data: RegisterRequest,
    db: Session = Depends(get_db),
):
    """
    Self-service registration.

    Only employees can self-register. Company admins and managers are
    created by an admin of their company, super admins by the CLI. The Zoom
    account is queued for sync; a warning is returned until it completes.
    """
    if data.role == Role.SUPER_ADMIN:
        raise HTTPException(status_code=403, detail="Cannot self-register as super admin")
    if data.role != Role.EMPLOYEE:
        raise HTTPException(
            status_code=403,
            detail=f"Cannot self-register as {data.role.value}; ask a company admin",
        )

    try:
        user = user_service.create_user(db, **data.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(
        "User registered",
        extra=build_log_context(user_id=user.id, company_id=user.company_id, route="/api/auth/register"),
    )
    return AuthResponse(
        user=UserRead.model_validate(user),
        token=create_token_for_user(user),
        warning=provider_sync_service.sync_warning(user.provider_sync_status),
    )


@router.post("/login", response_model=AuthResponse)
@limiter.limit(AUTH_LIMIT)
def login(
    request: Request,
    data: LoginRequest,
    db: Session = Depends(get_db),
):
    """Exchange username/password for a bearer token."""
    user = user_service.authenticate(db, data.username, data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return AuthResponse(
        user=UserRead.model_validate(user),
        token=create_token_for_user(user),
    )


@router.get("/me", response_model=UserRead)
def me(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Current user profile."""
    user = user_service.get_user_by_id(db, session.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
