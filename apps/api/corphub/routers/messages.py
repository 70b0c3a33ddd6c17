"""Messages router - direct messages over REST (shares live delivery with the relay)."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from corphub.core import permissions
from corphub.core.deps import get_current_session, get_db, get_message_relay
from corphub.db.models import Message
from corphub.schemas.auth import UserSession
from corphub.schemas.message import ConversationSummary, MessageCreate, MessageRead
from corphub.services import message_service, user_service
from corphub.services.relay_service import MessageRelay

router = APIRouter()


@router.get("", response_model=list[MessageRead])
def list_messages(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Every message the caller sent or received, newest first."""
    return message_service.list_user_messages(db, session.user_id)


@router.get("/conversations", response_model=list[ConversationSummary])
def list_conversations(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """One entry per conversation partner with the last message and unread count."""
    messages = message_service.list_user_messages(db, session.user_id)
    return [
        ConversationSummary(
            partner_id=c.partner_id,
            last_message=MessageRead.model_validate(c.last_message),
            unread_count=c.unread_count,
        )
        for c in message_service.group_conversations(messages, session.user_id)
    ]


@router.get("/conversation/{user_id}", response_model=list[MessageRead])
def get_conversation(
    user_id: int,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Messages between the caller and another user, oldest first."""
    me = user_service.get_user_by_id(db, session.user_id)
    other = user_service.get_user_by_id(db, user_id)
    if not me or not other:
        raise HTTPException(status_code=404, detail="User not found")
    if not permissions.can_communicate(me, other):
        raise HTTPException(
            status_code=403,
            detail="You don't have permission to communicate with this user",
        )
    return message_service.get_conversation(db, session.user_id, user_id)


def _create_checked(db: Session, sender_id: int, data: MessageCreate) -> Message:
    sender = user_service.get_user_by_id(db, sender_id)
    receiver = user_service.get_user_by_id(db, data.receiver_id)
    if not sender or not receiver:
        raise HTTPException(status_code=404, detail="User not found")
    if sender.id == receiver.id or not permissions.can_communicate(sender, receiver):
        raise HTTPException(
            status_code=403,
            detail="You don't have permission to communicate with this user",
        )
    message = message_service.create_message(
        db, sender.id, receiver.id, data.type, data.content
    )
    return message


@router.post("", response_model=MessageRead, status_code=201)
async def send_message(
    data: MessageCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    relay: MessageRelay = Depends(get_message_relay),
):
    """
    Send a message as the caller.

    The message is stored first, then pushed to the receiver if they are
    connected to the relay.
    """
    message = await run_in_threadpool(_create_checked, db, session.user_id, data)
    await relay.deliver(message)
    return message


@router.put("/{message_id}/read", response_model=MessageRead)
def mark_read(
    message_id: int,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Mark a message read (receiver only). Repeating the call is harmless."""
    message = message_service.get_message(db, message_id)
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    if message.receiver_id != session.user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return message_service.mark_read(db, message)
