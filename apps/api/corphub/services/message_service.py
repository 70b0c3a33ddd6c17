"""Message service - direct messages between users."""

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from corphub.db.enums import MessageType
from corphub.db.models import Message


def get_message(db: Session, message_id: int) -> Message | None:
    return db.query(Message).filter(Message.id == message_id).first()


def create_message(
    db: Session,
    sender_id: int,
    receiver_id: int,
    type: MessageType,
    content: str,
) -> Message:
    """Persist a message (authorization is the caller's job)."""
    message = Message(
        sender_id=sender_id,
        receiver_id=receiver_id,
        type=MessageType(type).value,
        content=content,
        is_read=False,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def list_user_messages(db: Session, user_id: int) -> list[Message]:
    """Every message the user sent or received, newest first."""
    return (
        db.query(Message)
        .filter(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .all()
    )


def get_conversation(db: Session, user_id: int, other_id: int) -> list[Message]:
    """Both directions between two users, oldest first."""
    return (
        db.query(Message)
        .filter(
            or_(
                and_(Message.sender_id == user_id, Message.receiver_id == other_id),
                and_(Message.sender_id == other_id, Message.receiver_id == user_id),
            )
        )
        .order_by(Message.created_at, Message.id)
        .all()
    )


def mark_read(db: Session, message: Message) -> Message:
    """Mark as read. Marking an already-read message is a no-op."""
    if not message.is_read:
        message.is_read = True
        db.commit()
        db.refresh(message)
    return message


@dataclass
class Conversation:
    partner_id: int
    last_message: Message
    unread_count: int


def group_conversations(messages: Iterable[Message], user_id: int) -> list[Conversation]:
    """
    Group a flat message list into one thread per conversation partner.

    Each thread keeps its latest message and the number of messages sent to
    user_id that are still unread. Threads are ordered by latest activity,
    newest first.
    """
    threads: dict[int, Conversation] = {}
    for message in messages:
        if message.sender_id == user_id:
            partner_id = message.receiver_id
        elif message.receiver_id == user_id:
            partner_id = message.sender_id
        else:
            continue

        thread = threads.get(partner_id)
        if thread is None:
            thread = threads[partner_id] = Conversation(partner_id, message, 0)
        elif _sort_key(message) > _sort_key(thread.last_message):
            thread.last_message = message

        if message.receiver_id == user_id and not message.is_read:
            thread.unread_count += 1

    return sorted(threads.values(), key=lambda t: _sort_key(t.last_message), reverse=True)


def _sort_key(message: Message):
    return (message.created_at, message.id)
