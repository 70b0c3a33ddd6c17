"""Authentication-related Pydantic schemas."""

from pydantic import BaseModel, EmailStr, Field

from corphub.db.enums import Role
from corphub.schemas.user import UserRead


class UserSession(BaseModel):
    """
    Full session context for authenticated requests.

    Returned by the get_current_session dependency. Carries the fields the
    permission rules need (id, role, company, manager), so it can be passed
    anywhere a User is accepted as the acting principal.
    """
    user_id: int
    username: str
    email: str
    role: Role
    company_id: int | None
    manager_id: int | None = None

    @property
    def id(self) -> int:
        return self.user_id


class LoginRequest(BaseModel):
    """Credentials for POST /api/auth/login."""
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=100)


class RegisterRequest(BaseModel):
    """Self-service registration."""
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=100)
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    role: Role
    company_id: int | None = None
    manager_id: int | None = None


class AuthResponse(BaseModel):
    """Login/register response: the user plus a bearer token."""
    user: UserRead
    token: str
    warning: str | None = None
