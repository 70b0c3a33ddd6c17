"""Enum definitions for application constants."""

from enum import Enum


class Role(str, Enum):
    """
    User roles, from widest to narrowest scope.

    - SUPER_ADMIN: platform operator, not attached to a company
    - COMPANY_ADMIN: manages every member of one company
    - MANAGER: leads a set of employees (their direct reports)
    - EMPLOYEE: reports to at most one manager
    """

    SUPER_ADMIN = "super_admin"
    COMPANY_ADMIN = "company_admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class MessageType(str, Enum):
    """Direct message payload kinds."""

    TEXT = "text"
    VOICE = "voice"  # base64 audio payload


class SyncStatus(str, Enum):
    """State of the provider (Zoom) copy of a local entity."""

    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"
    SKIPPED = "skipped"  # provider not configured


class JobType(str, Enum):
    """Types of background jobs."""

    PROVIDER_USER_SYNC = "provider_user_sync"
    PROVIDER_MEETING_CREATE = "provider_meeting_create"
    PROVIDER_MEETING_UPDATE = "provider_meeting_update"
    PROVIDER_MEETING_DELETE = "provider_meeting_delete"


class JobStatus(str, Enum):
    """Status of background jobs."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


DEFAULT_JOB_STATUS = JobStatus.PENDING
DEFAULT_SYNC_STATUS = SyncStatus.SKIPPED

# Company-scoped roles (company_id is mandatory)
COMPANY_ROLES = frozenset({Role.COMPANY_ADMIN, Role.MANAGER, Role.EMPLOYEE})

# Roles a company admin may create, edit or delete
ROLES_MANAGED_BY_COMPANY_ADMIN = frozenset({Role.MANAGER, Role.EMPLOYEE})

# Roles allowed to create users at all
ROLES_CAN_CREATE_USERS = frozenset({Role.SUPER_ADMIN, Role.COMPANY_ADMIN})

# Roles allowed to inspect the job queue
ROLES_CAN_VIEW_JOBS = frozenset({Role.SUPER_ADMIN, Role.COMPANY_ADMIN})
