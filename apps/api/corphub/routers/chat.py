"""Team chat router - Zoom channels, channel members, channel/DM messages and files."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile

from corphub.core.deps import get_current_session
from corphub.routers.zoom import get_configured_zoom, provider_errors, read_upload
from corphub.schemas.auth import UserSession
from corphub.schemas.zoom import (
    ChannelCreate,
    ChannelMembersAdd,
    ChannelUpdate,
    ChatMessageEdit,
    ChatMessageSend,
)
from corphub.services.zoom_service import ZoomClient

router = APIRouter()


def _destination(
    to_jid: str | None = None,
    to_contact: str | None = None,
    to_channel: str | None = None,
) -> dict[str, str]:
    destination = {
        key: value
        for key, value in (
            ("to_jid", to_jid),
            ("to_contact", to_contact),
            ("to_channel", to_channel),
        )
        if value
    }
    if not destination:
        raise HTTPException(
            status_code=400,
            detail="Message destination (to_jid, to_contact, or to_channel) is required",
        )
    return destination


# =============================================================================
# Channels
# =============================================================================

@router.get("/channels")
async def list_channels(
    user_id: str | None = None,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    """Channels of the account, or of one Zoom user when user_id is given."""
    with provider_errors("get channels"):
        return await zoom.list_channels(user_id)


@router.post("/channels", status_code=201)
async def create_channel(
    data: ChannelCreate,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    with provider_errors("create channel"):
        return await zoom.create_channel(data.name, data.type, data.members)


@router.patch("/channels/{channel_id}", status_code=204)
async def update_channel(
    channel_id: str,
    data: ChannelUpdate,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    updates = data.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    with provider_errors("update channel"):
        await zoom.update_channel(channel_id, updates)
    return Response(status_code=204)


@router.get("/channels/{channel_id}/members")
async def list_channel_members(
    channel_id: str,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    with provider_errors("get channel members"):
        return await zoom.list_channel_members(channel_id)


@router.post("/channels/{channel_id}/members", status_code=204)
async def add_channel_members(
    channel_id: str,
    data: ChannelMembersAdd,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    with provider_errors("add channel members"):
        await zoom.add_channel_members(channel_id, data.members)
    return Response(status_code=204)


@router.delete("/channels/{channel_id}/members/{member_id}", status_code=204)
async def remove_channel_member(
    channel_id: str,
    member_id: str,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    with provider_errors("remove channel member"):
        await zoom.remove_channel_member(channel_id, member_id)
    return Response(status_code=204)


# =============================================================================
# Messages
# =============================================================================

@router.get("/messages")
async def list_messages(
    to_jid: str | None = None,
    to_contact: str | None = None,
    to_channel: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    page_size: Annotated[int, Query(ge=1, le=50)] = 30,
    next_page_token: str | None = None,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    """
    One page of chat history for a contact, JID or channel.

    Returns {"messages": [...], "next_page_token": ...}.
    """
    destination = _destination(to_jid, to_contact, to_channel)
    with provider_errors("get messages"):
        return await zoom.list_chat_messages(
            **destination,
            from_date=from_date,
            to_date=to_date,
            page_size=page_size,
            next_page_token=next_page_token,
        )


@router.post("/messages", status_code=201)
async def send_message(
    data: ChatMessageSend,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    payload = {"message": data.message, **data.as_params()}
    if data.file_ids:
        payload["file_ids"] = data.file_ids
    with provider_errors("send message"):
        return await zoom.send_chat_message(payload)


@router.patch("/messages/{message_id}", status_code=204)
async def update_message(
    message_id: str,
    data: ChatMessageEdit,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    with provider_errors("update message"):
        await zoom.update_chat_message(message_id, data.message, data.as_params())
    return Response(status_code=204)


@router.delete("/messages/{message_id}", status_code=204)
async def delete_message(
    message_id: str,
    to_jid: str | None = None,
    to_contact: str | None = None,
    to_channel: str | None = None,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    destination = _destination(to_jid, to_contact, to_channel)
    with provider_errors("delete message"):
        await zoom.delete_chat_message(message_id, destination)
    return Response(status_code=204)


# =============================================================================
# Files
# =============================================================================

@router.post("/upload", status_code=201)
async def upload_file(
    file: Annotated[UploadFile, File()],
    to_jid: Annotated[str | None, Form()] = None,
    to_contact: Annotated[str | None, Form()] = None,
    to_channel: Annotated[str | None, Form()] = None,
    session: UserSession = Depends(get_current_session),
    zoom: ZoomClient = Depends(get_configured_zoom),
):
    """Upload a file into a chat with a contact, JID or channel."""
    destination = _destination(to_jid, to_contact, to_channel)
    content = await read_upload(file)
    with provider_errors("upload file"):
        return await zoom.upload_file(
            file.filename or "untitled",
            content,
            file.content_type or "application/octet-stream",
            destination,
        )
