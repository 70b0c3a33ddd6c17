"""Meeting service - scheduling, participants and notification frames."""

from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session

from corphub.core import permissions
from corphub.db.enums import Role
from corphub.db.models import Meeting, MeetingParticipant, User
from corphub.services import provider_sync_service


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_meeting(db: Session, meeting_id: int) -> Meeting | None:
    return db.query(Meeting).filter(Meeting.id == meeting_id).first()


def list_meetings(db: Session, actor, company_id: int | None = None) -> list[Meeting]:
    """
    Meetings visible to the actor, soonest first.

    super_admin: all (optionally one company); company_admin: their
    company; others: meetings they organize or attend.
    """
    role = Role(actor.role)
    query = db.query(Meeting).order_by(Meeting.start_time, Meeting.id)

    if role == Role.SUPER_ADMIN:
        if company_id is not None:
            query = query.filter(Meeting.company_id == company_id)
        return query.all()

    if role == Role.COMPANY_ADMIN:
        return query.filter(Meeting.company_id == actor.company_id).all()

    attending = db.query(MeetingParticipant.meeting_id).filter(
        MeetingParticipant.user_id == actor.id
    )
    return query.filter(
        or_(Meeting.organizer_id == actor.id, Meeting.id.in_(attending))
    ).all()


def _load_participants(db: Session, meeting: Meeting, user_ids: list[int]) -> list[User]:
    """
    Resolve and validate participant ids (duplicates dropped, order kept).

    Raises:
        ValueError: Unknown user, or user outside the meeting's company
    """
    users: list[User] = []
    seen: set[int] = set()
    for user_id in user_ids:
        if user_id in seen:
            continue
        seen.add(user_id)
        user = db.get(User, user_id)
        if user is None:
            raise ValueError(f"Participant {user_id} not found")
        reason = permissions.check_participant(meeting, user)
        if reason:
            raise ValueError(reason)
        users.append(user)
    return users


def create_meeting(
    db: Session,
    organizer_id: int,
    company_id: int,
    *,
    title: str,
    start_time: datetime,
    end_time: datetime,
    description: str | None = None,
    participant_ids: list[int] | None = None,
) -> Meeting:
    """
    Create a meeting with its participants and queue the Zoom copy.

    Raises:
        ValueError: Bad time range or invalid participant
    """
    start_time, end_time = _utc(start_time), _utc(end_time)
    if end_time <= start_time:
        raise ValueError("end_time must be after start_time")

    meeting = Meeting(
        title=title,
        description=description,
        start_time=start_time,
        end_time=end_time,
        organizer_id=organizer_id,
        company_id=company_id,
    )
    for user in _load_participants(db, meeting, participant_ids or []):
        meeting.participants.append(MeetingParticipant(user_id=user.id))

    db.add(meeting)
    db.commit()
    db.refresh(meeting)

    provider_sync_service.queue_meeting_sync(db, meeting)
    db.refresh(meeting)
    return meeting


def update_meeting(
    db: Session, meeting: Meeting, changes: dict
) -> tuple[Meeting, list[int], list[int]]:
    """
    Apply a partial update; participant_ids, when given, replaces the set.

    Returns (meeting, added_user_ids, removed_user_ids).

    Raises:
        ValueError: Bad time range or invalid participant
    """
    start = _utc(changes["start_time"]) if changes.get("start_time") else _utc(meeting.start_time)
    end = _utc(changes["end_time"]) if changes.get("end_time") else _utc(meeting.end_time)
    if end <= start:
        raise ValueError("end_time must be after start_time")

    schedule_changed = False
    if changes.get("title") is not None and changes["title"] != meeting.title:
        meeting.title = changes["title"]
        schedule_changed = True
    if "description" in changes and changes["description"] != meeting.description:
        meeting.description = changes["description"]
        schedule_changed = True
    if start != _utc(meeting.start_time) or end != _utc(meeting.end_time):
        meeting.start_time = start
        meeting.end_time = end
        schedule_changed = True

    added: list[int] = []
    removed: list[int] = []
    if changes.get("participant_ids") is not None:
        wanted = _load_participants(db, meeting, changes["participant_ids"])
        wanted_ids = [u.id for u in wanted]
        current = {p.user_id: p for p in meeting.participants}
        for user_id in wanted_ids:
            if user_id not in current:
                meeting.participants.append(MeetingParticipant(user_id=user_id))
                added.append(user_id)
        for user_id, participant in current.items():
            if user_id not in wanted_ids:
                meeting.participants.remove(participant)
                removed.append(user_id)

    db.commit()
    db.refresh(meeting)

    if schedule_changed:
        provider_sync_service.queue_meeting_sync(db, meeting)
        db.refresh(meeting)
    return meeting, added, removed


def add_participants(db: Session, meeting: Meeting, user_ids: list[int]) -> list[int]:
    """Add participants; ids already present are ignored. Returns the added ids."""
    current = set(meeting.participant_ids)
    added = []
    for user in _load_participants(db, meeting, user_ids):
        if user.id not in current:
            meeting.participants.append(MeetingParticipant(user_id=user.id))
            added.append(user.id)
    db.commit()
    db.refresh(meeting)
    return added


def remove_participant(db: Session, meeting: Meeting, user_id: int) -> bool:
    """Remove a participant. Returns False when they were not in the meeting."""
    for participant in meeting.participants:
        if participant.user_id == user_id:
            meeting.participants.remove(participant)
            db.commit()
            db.refresh(meeting)
            return True
    return False


def delete_meeting(db: Session, meeting: Meeting) -> list[int]:
    """
    Delete a meeting and its participant rows.

    The Zoom copy, if any, is queued for deletion. Returns the ids of the
    former participants so they can be notified.
    """
    participant_ids = meeting.participant_ids
    provider_sync_service.queue_meeting_delete(db, meeting, commit=False)
    db.delete(meeting)
    db.commit()
    return participant_ids


# =============================================================================
# Realtime notification frames
# =============================================================================

def invite_frame(meeting: Meeting) -> dict:
    return {
        "type": "meeting_invite",
        "meetingId": meeting.id,
        "title": meeting.title,
        "startTime": _utc(meeting.start_time).isoformat(),
    }


def update_frame(meeting_id: int, title: str, action: str, start_time: datetime | None = None) -> dict:
    """action is one of added / removed / cancelled."""
    frame = {
        "type": "meeting_update",
        "meetingId": meeting_id,
        "action": action,
        "title": title,
    }
    if start_time is not None:
        frame["startTime"] = _utc(start_time).isoformat()
    return frame
