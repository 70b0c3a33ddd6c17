"""User service - accounts, hierarchy validation and role-scoped listing."""

from sqlalchemy.orm import Session

from corphub.core import permissions
from corphub.core.security import hash_password, verify_password
from corphub.db.enums import COMPANY_ROLES, Role
from corphub.db.models import Company, Meeting, User
from corphub.services import provider_sync_service


def get_user_by_id(db: Session, user_id: int) -> User | None:
    """Get user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_username(db: Session, username: str) -> User | None:
    return db.query(User).filter(User.username == username).first()


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get user by email (case-insensitive)."""
    return db.query(User).filter(User.email == email.lower()).first()


def authenticate(db: Session, username: str, password: str) -> User | None:
    """Return the user when the credentials match, else None."""
    user = get_user_by_username(db, username)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def list_users(db: Session, actor, company_id: int | None = None) -> list[User]:
    """
    Users the actor may list.

    super_admin: everyone, or one company with company_id.
    company_admin: their whole company (including themselves).
    manager / employee: their contacts.
    """
    role = Role(actor.role)
    query = db.query(User).order_by(User.id)

    if role == Role.SUPER_ADMIN:
        if company_id is not None:
            query = query.filter(User.company_id == company_id)
        return query.all()

    if actor.company_id is None:
        return []

    members = query.filter(User.company_id == actor.company_id).all()
    if role == Role.COMPANY_ADMIN:
        return members
    return permissions.filter_visible_users(actor, members)


def list_contacts(db: Session, actor) -> list[User]:
    """Everyone the actor may message (self excluded)."""
    if Role(actor.role) == Role.SUPER_ADMIN:
        candidates = db.query(User).order_by(User.id).all()
    elif actor.company_id is None:
        return []
    else:
        candidates = (
            db.query(User)
            .filter(User.company_id == actor.company_id)
            .order_by(User.id)
            .all()
        )
    return permissions.filter_visible_users(actor, candidates)


# =============================================================================
# Validation
# =============================================================================

def ensure_unique(
    db: Session,
    username: str | None,
    email: str | None,
    exclude_id: int | None = None,
) -> None:
    """
    Raises:
        ValueError: Username or email already taken
    """
    if username:
        existing = get_user_by_username(db, username)
        if existing and existing.id != exclude_id:
            raise ValueError("Username already exists")
    if email:
        existing = get_user_by_email(db, email)
        if existing and existing.id != exclude_id:
            raise ValueError("Email already exists")


def validate_placement(
    db: Session,
    role: Role,
    company_id: int | None,
    manager_id: int | None,
) -> None:
    """
    Check the role/company/manager combination.

    - super_admin has no company
    - every other role needs an existing company
    - only employees have a manager, and it must be a manager of the same company

    Raises:
        ValueError: Invalid combination
    """
    if role == Role.SUPER_ADMIN:
        if company_id is not None:
            raise ValueError("Super admins cannot belong to a company")
        if manager_id is not None:
            raise ValueError("Super admins cannot have a manager")
        return

    if role in COMPANY_ROLES and company_id is None:
        raise ValueError(f"A company is required for role {role.value}")
    if db.get(Company, company_id) is None:
        raise ValueError("Company not found")

    if manager_id is None:
        return
    if role != Role.EMPLOYEE:
        raise ValueError("Only employees can have a manager")
    manager = get_user_by_id(db, manager_id)
    if manager is None or manager.role != Role.MANAGER.value:
        raise ValueError("manager_id must reference a manager")
    if manager.company_id != company_id:
        raise ValueError("Manager must belong to the same company")


# =============================================================================
# Mutations
# =============================================================================

def create_user(
    db: Session,
    *,
    username: str,
    password: str,
    email: str,
    first_name: str,
    last_name: str,
    role: Role,
    company_id: int | None = None,
    manager_id: int | None = None,
) -> User:
    """
    Create a user and queue their Zoom account sync.

    The local account is committed first; Zoom is handled by the outbox.

    Raises:
        ValueError: Duplicate username/email or invalid placement
    """
    ensure_unique(db, username, email)
    validate_placement(db, role, company_id, manager_id)

    user = User(
        username=username,
        email=email.lower(),
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role.value,
        company_id=company_id,
        manager_id=manager_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    provider_sync_service.queue_user_sync(db, user)
    db.refresh(user)
    return user


def update_user(db: Session, user: User, changes: dict) -> User:
    """
    Apply a partial update (already authorized).

    Raises:
        ValueError: Duplicate username/email or invalid placement
    """
    ensure_unique(db, changes.get("username"), changes.get("email"), exclude_id=user.id)

    role = Role(changes["role"]) if changes.get("role") else Role(user.role)
    company_id = changes["company_id"] if "company_id" in changes else user.company_id
    manager_id = changes["manager_id"] if "manager_id" in changes else user.manager_id
    if role != Role.EMPLOYEE and "manager_id" not in changes:
        manager_id = None
    validate_placement(db, role, company_id, manager_id)

    email_changed = bool(changes.get("email")) and changes["email"].lower() != user.email

    for field in ("username", "first_name", "last_name"):
        if changes.get(field) is not None:
            setattr(user, field, changes[field])
    if changes.get("email"):
        user.email = changes["email"].lower()
    if changes.get("password"):
        user.password_hash = hash_password(changes["password"])

    if role.value != user.role or company_id != user.company_id:
        _detach_reports(db, user)
    user.role = role.value
    user.company_id = company_id
    user.manager_id = manager_id

    db.commit()
    db.refresh(user)

    if email_changed:
        provider_sync_service.queue_user_sync(db, user)
        db.refresh(user)
    return user


def change_role(db: Session, user: User, new_role: Role) -> User:
    """
    Change a user's role (already authorized).

    Raises:
        ValueError: The new role does not fit the user's placement
    """
    manager_id = user.manager_id if new_role == Role.EMPLOYEE else None
    validate_placement(db, new_role, user.company_id, manager_id)

    if new_role.value != user.role:
        _detach_reports(db, user)
    user.role = new_role.value
    user.manager_id = manager_id
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user: User) -> None:
    """
    Delete a user.

    Their messages, participations and organized meetings cascade; Zoom
    copies of those meetings are queued for deletion. Reports lose their
    manager.
    """
    organized = db.query(Meeting).filter(Meeting.organizer_id == user.id).all()
    for meeting in organized:
        provider_sync_service.queue_meeting_delete(db, meeting, commit=False)
    _detach_reports(db, user)
    db.delete(user)
    db.commit()


def _detach_reports(db: Session, user: User) -> None:
    # A manager that stops being one leaves their reports unassigned
    db.query(User).filter(User.manager_id == user.id).update(
        {User.manager_id: None}, synchronize_session="fetch"
    )
