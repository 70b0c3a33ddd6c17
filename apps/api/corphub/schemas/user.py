"""Pydantic schemas for users."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from corphub.db.enums import Role


class UserCreate(BaseModel):
    """Request to create a user (super admin / company admin)."""
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=100)
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    role: Role
    company_id: int | None = None
    manager_id: int | None = None


class UserUpdate(BaseModel):
    """Request to update a user (partial)."""
    username: str | None = Field(None, min_length=3, max_length=50)
    password: str | None = Field(None, min_length=6, max_length=100)
    email: EmailStr | None = None
    first_name: str | None = Field(None, min_length=1, max_length=50)
    last_name: str | None = Field(None, min_length=1, max_length=50)
    role: Role | None = None
    company_id: int | None = None
    manager_id: int | None = None


class RoleUpdate(BaseModel):
    """Request body for PUT /api/users/{id}/role."""
    role: Role


class UserRead(BaseModel):
    """User response (never includes the password hash)."""
    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    role: Role
    company_id: int | None
    manager_id: int | None
    created_at: datetime
    zoom_user_id: str | None = None
    zoom_email: str | None = None
    provider_sync_status: str
    provider_sync_error: str | None = None

    model_config = {"from_attributes": True}


class UserCreateResponse(UserRead):
    """User response with a soft warning when provider sync is not complete."""
    warning: str | None = None


class ContactRead(BaseModel):
    """Compact user for contact pickers."""
    id: int
    username: str
    first_name: str
    last_name: str
    role: Role
    company_id: int | None
    manager_id: int | None

    model_config = {"from_attributes": True}
