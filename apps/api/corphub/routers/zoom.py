"""Zoom proxy router - meetings, 1:1 chat, voice notes and contacts on the provider."""

import logging
from contextlib import contextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from sqlalchemy import or_
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from corphub.core import permissions
from corphub.core.config import settings
from corphub.core.deps import get_current_session, get_db, require_roles
from corphub.core.structured_logging import build_log_context
from corphub.db.enums import Role
from corphub.db.models import Meeting, User
from corphub.schemas.auth import UserSession
from corphub.schemas.zoom import ZoomChatSend, ZoomMeetingCreate, ZoomMeetingUpdate
from corphub.services.zoom_service import ZoomAPIError, ZoomClient, get_zoom_client

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_ALLOWED = "Communication not allowed between these users"


def get_configured_zoom(zoom: ZoomClient = Depends(get_zoom_client)) -> ZoomClient:
    """The shared provider client; 503 when the S2S app is not configured."""
    if not zoom.configured:
        raise HTTPException(status_code=503, detail="Zoom integration is not configured")
    return zoom


@contextmanager
def provider_errors(action: str):
    """
    Translate provider failures for endpoints that proxy a single call.

    Provider 404 stays 404 and a missing configuration is 503; everything
    else is reported as a bad gateway.
    """
    try:
        yield
    except ZoomAPIError as e:
        logger.warning("Zoom %s failed: %s (%s)", action, type(e).__name__, e.status_code)
        if e.status_code in (404, 503):
            raise HTTPException(status_code=e.status_code, detail=e.message)
        raise HTTPException(status_code=502, detail=f"Failed to {action}: {e.message}")


async def read_upload(file: UploadFile, *, audio_only: bool = False) -> bytes:
    """Read an uploaded file, enforcing type and size limits (400 / 413)."""
    content_type = file.content_type or "application/octet-stream"
    if audio_only and not content_type.startswith("audio/"):
        raise HTTPException(status_code=400, detail="Voice notes must be audio files")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(content) > settings.UPLOAD_MAX_BYTES:
        raise HTTPException(status_code=413, detail="File too large")
    return content


def check_meeting_access(
    db: Session, session: UserSession, meeting_id: str, *, modify: bool = False
) -> None:
    """
    Apply the local meeting rules to a provider meeting id.

    The provider account is shared by every company, so a meeting is only
    reachable through the local meeting it is linked to. Super admins may
    also reach unlinked provider meetings.

    Raises:
        HTTPException 404: No local meeting is linked to the id
        HTTPException 403: The linked meeting is not visible/modifiable
    """
    meeting = db.query(Meeting).filter(Meeting.zoom_meeting_id == meeting_id).first()
    if meeting is None:
        if session.role == Role.SUPER_ADMIN:
            return
        raise HTTPException(status_code=404, detail="Meeting not found")

    if modify:
        allowed = permissions.can_modify_meeting(session, meeting)
    else:
        allowed = permissions.can_view_meeting(session, meeting, meeting.participant_ids)
    if not allowed:
        raise HTTPException(status_code=403, detail="Forbidden")


def check_contact(db: Session, session: UserSession, contact: str) -> None:
    """
    Resolve a provider contact (Zoom email or user id) to a local user and
    apply the communication rule.

    Raises:
        HTTPException 404: No local user is linked to the contact
        HTTPException 403: The pair may not talk
    """
    target = (
        db.query(User)
        .filter(or_(User.zoom_email == contact, User.zoom_user_id == contact))
        .first()
    )
    if target is None:
        raise HTTPException(status_code=404, detail="Contact not found")
    if target.id == session.user_id or not permissions.can_communicate(session, target):
        raise HTTPException(status_code=403, detail=NOT_ALLOWED)


# =============================================================================
# Meetings
# =============================================================================

@router.post("/meetings", status_code=201)
async def create_meeting(
    data: ZoomMeetingCreate,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    """Create a scheduled meeting directly on the provider."""
    with provider_errors("create meeting"):
        return await zoom.create_meeting(
            topic=data.topic,
            start_time=data.start_time,
            duration=data.duration,
            password=data.password,
        )


@router.get("/meetings")
async def list_meetings(
    session: UserSession = Depends(require_roles([Role.SUPER_ADMIN])),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    """Every meeting on the shared provider account (super admin only)."""
    with provider_errors("fetch meetings"):
        return await zoom.list_meetings()


@router.get("/meetings/{meeting_id}")
async def get_meeting(
    meeting_id: str,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    await run_in_threadpool(check_meeting_access, db, session, meeting_id)
    with provider_errors("get meeting information"):
        return await zoom.get_meeting(meeting_id)


@router.patch("/meetings/{meeting_id}", status_code=204)
async def update_meeting(
    meeting_id: str,
    data: ZoomMeetingUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    fields = data.model_dump(exclude_none=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    await run_in_threadpool(check_meeting_access, db, session, meeting_id, modify=True)
    with provider_errors("update meeting"):
        await zoom.update_meeting(meeting_id, fields)
    return Response(status_code=204)


@router.delete("/meetings/{meeting_id}", status_code=204)
async def delete_meeting(
    meeting_id: str,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    await run_in_threadpool(check_meeting_access, db, session, meeting_id, modify=True)
    with provider_errors("delete meeting"):
        await zoom.delete_meeting(meeting_id)
    return Response(status_code=204)


# =============================================================================
# Chat
# =============================================================================

@router.post("/chat/send")
async def send_chat_message(
    data: ZoomChatSend,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    await run_in_threadpool(check_contact, db, session, data.to_contact)
    with provider_errors("send message"):
        return await zoom.send_chat_message(
            {"message": data.message, "to_contact": data.to_contact}
        )


@router.get("/chat/messages/{contact_id}")
async def list_chat_messages(
    contact_id: str,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    """Chat history with one contact (email or user id), newest page only."""
    await run_in_threadpool(check_contact, db, session, contact_id)
    with provider_errors("fetch messages"):
        result = await zoom.list_chat_messages(to_contact=contact_id, page_size=50)
    return result["messages"]


@router.post("/chat/voice")
async def send_voice_message(
    voice: Annotated[UploadFile, File()],
    to_contact: Annotated[str, Form(min_length=1)],
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    """Upload an audio recording and send it to a contact as a voice message."""
    content = await read_upload(voice, audio_only=True)
    await run_in_threadpool(check_contact, db, session, to_contact)
    with provider_errors("send voice message"):
        result = await zoom.send_voice_message(
            to_contact,
            voice.filename or "voice-message.webm",
            content,
            voice.content_type,
        )
    logger.info(
        "Voice message sent (%d bytes)",
        len(content),
        extra=build_log_context(user_id=session.user_id, company_id=session.company_id),
    )
    return result


@router.get("/contacts")
async def list_contacts(
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    with provider_errors("fetch contacts"):
        return await zoom.list_contacts()
