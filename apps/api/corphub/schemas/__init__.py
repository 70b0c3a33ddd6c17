"""Pydantic schemas for API request/response models."""

from corphub.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, UserSession
from corphub.schemas.company import CompanyCreate, CompanyRead, CompanyUpdate, OrgChart
from corphub.schemas.job import JobRead
from corphub.schemas.meeting import MeetingCreate, MeetingRead, MeetingUpdate
from corphub.schemas.message import ConversationSummary, MessageCreate, MessageRead
from corphub.schemas.user import ContactRead, UserCreate, UserRead, UserUpdate

__all__ = [
    # Auth
    "AuthResponse",
    "LoginRequest",
    "RegisterRequest",
    "UserSession",
    # Users
    "ContactRead",
    "UserCreate",
    "UserRead",
    "UserUpdate",
    # Companies
    "CompanyCreate",
    "CompanyRead",
    "CompanyUpdate",
    "OrgChart",
    # Messages
    "ConversationSummary",
    "MessageCreate",
    "MessageRead",
    # Meetings
    "MeetingCreate",
    "MeetingRead",
    "MeetingUpdate",
    # Jobs
    "JobRead",
]
