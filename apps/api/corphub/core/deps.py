"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from corphub.core.security import decode_session_token, parse_bearer
from corphub.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_token_payload(request: Request) -> dict:
    """
    Verify the bearer JWT and return its claims.

    No database access: role and company_id come from the token itself.

    Raises:
        HTTPException 401: Missing, malformed, expired or forged token
    """
    authorization = request.headers.get("Authorization")
    if not authorization:
        raise HTTPException(status_code=401, detail="No token provided")

    token = parse_bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Token error")

    try:
        return decode_session_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid token")


def load_session(db: Session, payload: dict):
    """
    Build a UserSession from verified claims and the current user row.

    Shared by the REST dependency and the websocket handshake.

    Raises:
        HTTPException 401: User no longer exists
        HTTPException 403: Unknown role stored for the user
    """
    # Import here to avoid circular imports
    from corphub.db.enums import Role
    from corphub.db.models import User
    from corphub.schemas.auth import UserSession

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not Role.has_value(user.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{user.role}'. Contact administrator.",
        )

    return UserSession(
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=Role(user.role),
        company_id=user.company_id,
        manager_id=user.manager_id,
    )


def get_current_session(
    payload: dict = Depends(get_token_payload),
    db: Session = Depends(get_db),
):
    """
    Get full session context: user_id, role, company_id, manager_id.

    This is the PRIMARY auth dependency for most endpoints.
    """
    return load_session(db, payload)


def require_roles(allowed_roles: list):
    """
    Dependency factory for role-based authorization.

    The allow-list is checked against the token claim before any database
    access; the session is loaded only for permitted roles.

    Usage:
        @router.post("", dependencies=[Depends(require_roles([Role.SUPER_ADMIN]))])
    """
    from corphub.db.enums import Role

    def dependency(
        payload: dict = Depends(get_token_payload),
        db: Session = Depends(get_db),
    ):
        claimed = payload.get("role")
        role = Role(claimed) if Role.has_value(claimed or "") else None
        if role not in allowed_roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return load_session(db, payload)

    return dependency


def get_connection_manager(request: Request):
    """The app-owned realtime connection registry."""
    return request.app.state.connections


def get_message_relay(request: Request):
    """The app-owned realtime message relay."""
    return request.app.state.relay
