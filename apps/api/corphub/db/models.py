"""SQLAlchemy ORM models for companies, users, messaging, meetings and jobs."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from corphub.db.base import Base
from corphub.db.enums import DEFAULT_JOB_STATUS, DEFAULT_SYNC_STATUS


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Tenants & Users
# =============================================================================

class Company(Base):
    """
    A tenant in the multi-tenant system.

    Users outside a company are invisible to its members
    (except to super admins, who have no company).
    """

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=_utcnow, server_default=func.now(), nullable=False
    )

    users: Mapped[list["User"]] = relationship(
        back_populates="company", passive_deletes="all"
    )
    meetings: Mapped[list["Meeting"]] = relationship(
        back_populates="company", passive_deletes="all"
    )


class User(Base):
    """
    Application user.

    company_id is NULL only for super admins. manager_id is only meaningful
    for employees and points at a manager of the same company.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_company", "company_id"),
        Index("idx_users_manager", "manager_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    company_id: Mapped[int | None] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=True
    )
    manager_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=_utcnow, server_default=func.now(), nullable=False
    )

    # Zoom account linked to this user (filled by the provider sync job)
    zoom_user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zoom_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    zoom_pmi: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    zoom_created_at: Mapped[datetime | None] = mapped_column(nullable=True)
    provider_sync_status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_SYNC_STATUS.value, nullable=False
    )
    provider_sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    company: Mapped[Company | None] = relationship(back_populates="users")
    manager: Mapped["User | None"] = relationship(
        remote_side="User.id", back_populates="reports"
    )
    reports: Mapped[list["User"]] = relationship(
        back_populates="manager", passive_deletes="all"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# =============================================================================
# Messaging
# =============================================================================

class Message(Base):
    """
    Direct message between two users.

    Immutable once created; only the receiver may flip is_read.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_sender", "sender_id", "created_at"),
        Index("idx_messages_receiver", "receiver_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=_utcnow, server_default=func.now(), nullable=False
    )


# =============================================================================
# Meetings
# =============================================================================

class Meeting(Base):
    """
    Scheduled meeting inside one company.

    The optional zoom_* columns hold the provider meeting handle once the
    provider sync job has created it.
    """

    __tablename__ = "meetings"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_meetings_time_order"),
        Index("idx_meetings_company_start", "company_id", "start_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime] = mapped_column(nullable=False)
    organizer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    zoom_meeting_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zoom_password: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zoom_join_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider_sync_status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_SYNC_STATUS.value, nullable=False
    )
    provider_sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=_utcnow, server_default=func.now(), nullable=False
    )

    company: Mapped[Company] = relationship(back_populates="meetings")
    participants: Mapped[list["MeetingParticipant"]] = relationship(
        back_populates="meeting",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def participant_ids(self) -> list[int]:
        return [p.user_id for p in self.participants]

    @property
    def duration_minutes(self) -> int:
        return max(1, int((self.end_time - self.start_time).total_seconds() // 60))


class MeetingParticipant(Base):
    """Join row between a meeting and an invited user."""

    __tablename__ = "meeting_participants"
    __table_args__ = (
        UniqueConstraint("meeting_id", "user_id", name="uq_meeting_participant"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    meeting_id: Mapped[int] = mapped_column(
        ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    attended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    meeting: Mapped[Meeting] = relationship(back_populates="participants")
    user: Mapped[User] = relationship()


# =============================================================================
# Jobs (provider sync outbox)
# =============================================================================

class Job(Base):
    """
    Background job for async processing.

    Used as the outbox for provider (Zoom) sync: the request persists the
    local entity and enqueues a job, the worker retries with backoff.
    """

    __tablename__ = "jobs"
    __table_args__ = (
        Index("idx_jobs_pending", "status", "run_at"),
        Index("idx_jobs_company", "company_id", "created_at"),
        Index("uq_job_idempotency", "idempotency_key", unique=True),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int | None] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=True
    )

    job_type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    run_at: Mapped[datetime] = mapped_column(
        default=_utcnow, server_default=func.now(), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_JOB_STATUS.value, nullable=False
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        default=_utcnow, server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Idempotency key for deduplication
    idempotency_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
