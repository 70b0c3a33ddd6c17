"""Meetings router - scheduling with participant notifications over the relay."""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from corphub.core import permissions
from corphub.core.deps import get_connection_manager, get_current_session, get_db
from corphub.core.websocket import ConnectionManager
from corphub.db.models import Meeting
from corphub.schemas.auth import UserSession
from corphub.schemas.meeting import (
    MeetingCreate,
    MeetingRead,
    MeetingUpdate,
    MeetingWriteResponse,
    ParticipantAdd,
)
from corphub.services import company_service, meeting_service, provider_sync_service

router = APIRouter()


def _get_meeting_or_404(db: Session, meeting_id: int) -> Meeting:
    meeting = meeting_service.get_meeting(db, meeting_id)
    if not meeting:
        raise HTTPException(status_code=404, detail="Meeting not found")
    return meeting


def _get_modifiable(db: Session, session: UserSession, meeting_id: int) -> Meeting:
    meeting = _get_meeting_or_404(db, meeting_id)
    if not permissions.can_modify_meeting(session, meeting):
        raise HTTPException(status_code=403, detail="Forbidden")
    return meeting


def _write_response(meeting: Meeting) -> MeetingWriteResponse:
    response = MeetingWriteResponse.model_validate(meeting)
    response.warning = provider_sync_service.sync_warning(meeting.provider_sync_status)
    return response


@router.get("", response_model=list[MeetingRead])
def list_meetings(
    company_id: int | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Super admins see all (or one company), company admins their company, others their own."""
    return meeting_service.list_meetings(db, session, company_id=company_id)


@router.get("/{meeting_id}", response_model=MeetingRead)
def get_meeting(
    meeting_id: int,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    meeting = _get_meeting_or_404(db, meeting_id)
    if not permissions.can_view_meeting(session, meeting, meeting.participant_ids):
        raise HTTPException(status_code=403, detail="Forbidden")
    return meeting


def _create(db: Session, session: UserSession, data: MeetingCreate):
    company_id = data.company_id if data.company_id is not None else session.company_id
    if company_id is None:
        raise HTTPException(status_code=400, detail="company_id is required")
    if not permissions.can_schedule_for_company(session, company_id):
        raise HTTPException(status_code=403, detail="You can only create meetings for your company")

    if not company_service.get_company(db, company_id):
        raise HTTPException(status_code=404, detail="Company not found")

    try:
        meeting = meeting_service.create_meeting(
            db,
            organizer_id=session.user_id,
            company_id=company_id,
            title=data.title,
            description=data.description,
            start_time=data.start_time,
            end_time=data.end_time,
            participant_ids=data.participant_ids,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _write_response(meeting), meeting.participant_ids, meeting_service.invite_frame(meeting)


@router.post("", response_model=MeetingWriteResponse, status_code=201)
async def create_meeting(
    data: MeetingCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """Create a meeting; invited participants who are online get a meeting_invite frame."""
    response, invited, frame = await run_in_threadpool(_create, db, session, data)
    await connections.broadcast(invited, frame)
    return response


def _update(db: Session, session: UserSession, meeting_id: int, data: MeetingUpdate):
    meeting = _get_modifiable(db, session, meeting_id)
    try:
        meeting, added, removed = meeting_service.update_meeting(
            db, meeting, data.model_dump(exclude_unset=True)
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    notices = [
        (added, meeting_service.update_frame(meeting.id, meeting.title, "added", meeting.start_time)),
        (removed, meeting_service.update_frame(meeting.id, meeting.title, "removed")),
    ]
    return _write_response(meeting), notices


@router.put("/{meeting_id}", response_model=MeetingWriteResponse)
async def update_meeting(
    meeting_id: int,
    data: MeetingUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """
    Update a meeting (organizer, company admin or super admin).

    participant_ids replaces the participant set; added and removed users
    get a meeting_update frame.
    """
    response, notices = await run_in_threadpool(_update, db, session, meeting_id, data)
    for user_ids, frame in notices:
        await connections.broadcast(user_ids, frame)
    return response


def _delete(db: Session, session: UserSession, meeting_id: int):
    meeting = _get_modifiable(db, session, meeting_id)
    title = meeting.title
    participant_ids = meeting_service.delete_meeting(db, meeting)
    return participant_ids, meeting_service.update_frame(meeting_id, title, "cancelled")


@router.delete("/{meeting_id}", status_code=204)
async def delete_meeting(
    meeting_id: int,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """Delete a meeting; participants are notified and the Zoom copy is queued for deletion."""
    participant_ids, frame = await run_in_threadpool(_delete, db, session, meeting_id)
    await connections.broadcast(participant_ids, frame)
    return Response(status_code=204)


def _add_participants(db: Session, session: UserSession, meeting_id: int, data: ParticipantAdd):
    meeting = _get_modifiable(db, session, meeting_id)
    try:
        added = meeting_service.add_participants(db, meeting, data.user_ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    frame = meeting_service.update_frame(meeting.id, meeting.title, "added", meeting.start_time)
    return MeetingRead.model_validate(meeting), added, frame


@router.post("/{meeting_id}/participants", response_model=MeetingRead)
async def add_participants(
    meeting_id: int,
    data: ParticipantAdd,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    response, added, frame = await run_in_threadpool(
        _add_participants, db, session, meeting_id, data
    )
    await connections.broadcast(added, frame)
    return response


def _remove_participant(db: Session, session: UserSession, meeting_id: int, user_id: int):
    meeting = _get_modifiable(db, session, meeting_id)
    if not meeting_service.remove_participant(db, meeting, user_id):
        raise HTTPException(status_code=404, detail="Participant not found")
    return meeting_service.update_frame(meeting.id, meeting.title, "removed")


@router.delete("/{meeting_id}/participants/{user_id}", status_code=204)
async def remove_participant(
    meeting_id: int,
    user_id: int,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    frame = await run_in_threadpool(_remove_participant, db, session, meeting_id, user_id)
    await connections.send_to_user(user_id, frame)
    return Response(status_code=204)
