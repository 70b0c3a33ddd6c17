"""Role and relationship rules for communication, visibility and data access.

Every rule here is a pure function over "principals": any object exposing
``id``, ``role``, ``company_id`` and ``manager_id`` (a ``User`` row or a
``UserSession``). Routers, the realtime relay and the contact lists all
consult the same functions so the matrix cannot drift between surfaces.

Rules returning ``str | None`` give the denial reason, or None when allowed.
"""

from __future__ import annotations

from typing import Iterable, Protocol, TypeVar

from corphub.db.enums import ROLES_MANAGED_BY_COMPANY_ADMIN, Role


class Principal(Protocol):
    id: int
    role: str
    company_id: int | None
    manager_id: int | None


P = TypeVar("P", bound=Principal)


def _role(principal: Principal) -> Role | None:
    value = principal.role
    if isinstance(value, Role):
        return value
    return Role(value) if Role.has_value(value) else None


def same_company(a: Principal, b: Principal) -> bool:
    """Company match. A missing company never matches, not even another missing one."""
    return a.company_id is not None and a.company_id == b.company_id


# =============================================================================
# Communication
# =============================================================================

def can_communicate(sender: Principal, receiver: Principal) -> bool:
    """
    Decide whether sender may message receiver. First matching rule wins.

    - super_admin: always
    - different company: never
    - company_admin: anyone in the company
    - manager: company admins, and employees reporting to them
    - employee: company admins, and their own manager

    Self is not excluded here; callers drop the sender from candidate lists.
    """
    sender_role = _role(sender)
    receiver_role = _role(receiver)

    if sender_role == Role.SUPER_ADMIN:
        return True

    if not same_company(sender, receiver):
        return False

    if sender_role == Role.COMPANY_ADMIN:
        return True

    if sender_role == Role.MANAGER:
        if receiver_role == Role.COMPANY_ADMIN:
            return True
        return receiver_role == Role.EMPLOYEE and receiver.manager_id == sender.id

    if sender_role == Role.EMPLOYEE:
        if receiver_role == Role.COMPANY_ADMIN:
            return True
        return receiver_role == Role.MANAGER and sender.manager_id == receiver.id

    return False


def is_visible_contact(viewer: Principal, candidate: Principal) -> bool:
    """Whether candidate belongs in viewer's contact/participant picker."""
    if viewer.id == candidate.id:
        return False
    return can_communicate(viewer, candidate)


def filter_visible_users(viewer: Principal, users: Iterable[P]) -> list[P]:
    """
    Restrict a user list to viewer's contacts.

    super_admin sees everyone; company_admin sees the whole company;
    manager sees company admins plus direct reports; employee sees company
    admins plus their own manager. The viewer is never included.
    """
    return [u for u in users if is_visible_contact(viewer, u)]


# =============================================================================
# User administration
# =============================================================================

def can_view_user(actor: Principal, target: Principal) -> bool:
    """Read access to a single user profile."""
    role = _role(actor)
    if actor.id == target.id or role == Role.SUPER_ADMIN:
        return True
    if role == Role.COMPANY_ADMIN and same_company(actor, target):
        return True
    if role == Role.MANAGER and target.manager_id == actor.id:
        return True
    return is_visible_contact(actor, target)


def can_create_user(actor: Principal, company_id: int | None, role: Role) -> str | None:
    """Who may create which accounts."""
    actor_role = _role(actor)
    if actor_role == Role.SUPER_ADMIN:
        return None
    if actor_role != Role.COMPANY_ADMIN:
        return "Forbidden"
    if company_id != actor.company_id:
        return "Company admin can only add users to their own company"
    if role not in ROLES_MANAGED_BY_COMPANY_ADMIN:
        return "Company admin can only create manager or employee accounts"
    return None


def check_user_update(actor: Principal, target: Principal, changes: dict) -> str | None:
    """
    Field-level update rules.

    Self-updates are allowed except for a role change. Company admins edit
    managers/employees of their company without moving or promoting them;
    managers edit their own reports but not role or company.
    """
    actor_role = _role(actor)
    new_role = changes.get("role")
    new_company = changes.get("company_id")

    if actor.id == target.id:
        if new_role is not None and new_role != _role(target):
            return "Cannot change your own role"
        if new_company is not None and new_company != target.company_id:
            if actor_role != Role.SUPER_ADMIN:
                return "Cannot change your own company"
        return None

    if actor_role == Role.SUPER_ADMIN:
        return None

    target_role = _role(target)
    if (
        actor_role == Role.COMPANY_ADMIN
        and same_company(actor, target)
        and target_role in ROLES_MANAGED_BY_COMPANY_ADMIN
    ):
        if new_company is not None and new_company != actor.company_id:
            return "Cannot transfer user to another company"
        if new_role is not None and new_role not in ROLES_MANAGED_BY_COMPANY_ADMIN:
            return "Cannot promote to a role higher than your own"
        return None

    if (
        actor_role == Role.MANAGER
        and target_role == Role.EMPLOYEE
        and target.manager_id == actor.id
    ):
        if new_role is not None or new_company is not None:
            return "Managers cannot change employee role or company"
        return None

    return "Forbidden"


def check_role_change(actor: Principal, target: Principal, new_role: Role) -> str | None:
    """Rules for PUT /users/{id}/role. Nobody changes their own role."""
    if actor.id == target.id:
        return "Cannot change your own role"
    actor_role = _role(actor)
    if actor_role == Role.SUPER_ADMIN:
        return None
    if actor_role == Role.COMPANY_ADMIN and same_company(actor, target):
        if _role(target) not in ROLES_MANAGED_BY_COMPANY_ADMIN:
            return "Cannot change the role of users with higher roles"
        if new_role not in ROLES_MANAGED_BY_COMPANY_ADMIN:
            return "Cannot promote to a role higher than your own"
        return None
    return "Forbidden"


def check_user_delete(actor: Principal, target: Principal) -> str | None:
    """Deletion rules. Self-deletion is never allowed."""
    if actor.id == target.id:
        return "Cannot delete yourself"
    actor_role = _role(actor)
    if actor_role == Role.SUPER_ADMIN:
        return None
    if actor_role == Role.COMPANY_ADMIN:
        if not same_company(actor, target):
            return "Cannot delete users from other companies"
        if _role(target) not in ROLES_MANAGED_BY_COMPANY_ADMIN:
            return "Cannot delete users with higher roles"
        return None
    return "Forbidden"


# =============================================================================
# Companies
# =============================================================================

def can_view_company(actor: Principal, company_id: int) -> bool:
    return _role(actor) == Role.SUPER_ADMIN or actor.company_id == company_id


def can_update_company(actor: Principal, company_id: int) -> bool:
    role = _role(actor)
    if role == Role.SUPER_ADMIN:
        return True
    return role == Role.COMPANY_ADMIN and actor.company_id == company_id


# =============================================================================
# Meetings
# =============================================================================

def can_schedule_for_company(actor: Principal, company_id: int) -> bool:
    """Meetings are created for the actor's own company (any company for super admins)."""
    if _role(actor) == Role.SUPER_ADMIN:
        return True
    return actor.company_id is not None and actor.company_id == company_id


def can_view_meeting(actor: Principal, meeting, participant_ids: Iterable[int]) -> bool:
    role = _role(actor)
    if role == Role.SUPER_ADMIN:
        return True
    if role == Role.COMPANY_ADMIN and meeting.company_id == actor.company_id:
        return True
    return meeting.organizer_id == actor.id or actor.id in set(participant_ids)


def can_modify_meeting(actor: Principal, meeting) -> bool:
    """Organizer, company admin of the meeting's company, or super admin."""
    role = _role(actor)
    if role == Role.SUPER_ADMIN:
        return True
    if role == Role.COMPANY_ADMIN and meeting.company_id == actor.company_id:
        return True
    return meeting.organizer_id == actor.id


def check_participant(meeting, participant: Principal) -> str | None:
    """Participants must belong to the meeting's company (super admins excepted)."""
    if _role(participant) == Role.SUPER_ADMIN:
        return None
    if participant.company_id != meeting.company_id:
        return "Participants must belong to the meeting's company"
    return None
