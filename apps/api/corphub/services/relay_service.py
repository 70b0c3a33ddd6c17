"""
Realtime message relay.

Handles the JSON frames of one authenticated socket: status handshake,
ping/pong liveness, and text/voice messages that are permission-checked,
persisted, acknowledged to the sender and forwarded to an online receiver.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Callable

from fastapi import WebSocket
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from corphub.core import permissions
from corphub.core.structured_logging import build_log_context
from corphub.core.websocket import ConnectionManager
from corphub.db.enums import MessageType
from corphub.db.models import Message, User
from corphub.db.session import SessionLocal
from corphub.services import message_service

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Failed to process message"
NOT_FOUND_ERROR = "Sender or receiver not found"
NOT_ALLOWED_ERROR = "Communication not allowed between these users"
IDENTITY_ERROR = "senderId does not match the authenticated user"


class RelayRejected(Exception):
    """A frame was understood but refused; the message goes back to the sender."""


def timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def forward_frame(message: Message) -> dict:
    return {
        "type": message.type,
        "senderId": message.sender_id,
        "content": message.content,
        "messageId": message.id,
        "timestamp": timestamp(message.created_at),
    }


def sent_frame(message: Message) -> dict:
    return {
        "type": "sent",
        "messageId": message.id,
        "receiverId": message.receiver_id,
        "timestamp": timestamp(message.created_at),
    }


def error_frame(content: str) -> dict:
    return {"type": "error", "content": content}


def persist_message(
    db: Session,
    sender_id: int,
    receiver_id: int,
    type: MessageType,
    content: str,
) -> Message:
    """
    Check the communication rule and store the message.

    Raises:
        RelayRejected: Unknown sender/receiver, or the pair may not talk
    """
    sender = db.get(User, sender_id)
    receiver = db.get(User, receiver_id)
    if sender is None or receiver is None:
        raise RelayRejected(NOT_FOUND_ERROR)
    if sender.id == receiver.id or not permissions.can_communicate(sender, receiver):
        raise RelayRejected(NOT_ALLOWED_ERROR)
    return message_service.create_message(db, sender_id, receiver_id, type, content)


class MessageRelay:
    """
    Frame handling on top of a ConnectionManager.

    Sockets hold no database session. Each message frame opens its own
    session from ``session_factory`` and closes it before replying, so idle
    connections never keep a pooled connection checked out.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.connections = connections
        self.session_factory = session_factory

    def store(
        self, sender_id: int, receiver_id: int, type: MessageType, content: str
    ) -> Message:
        """Persist one message in a short-lived session (run in the threadpool)."""
        with self.session_factory() as db:
            return persist_message(db, sender_id, receiver_id, type, content)

    async def deliver(self, message: Message) -> bool:
        """Forward a stored message to its receiver. False when they are offline."""
        return await self.connections.send_to_user(
            message.receiver_id, forward_frame(message)
        )

    async def handle_frame(
        self,
        websocket: WebSocket,
        user_id: int,
        raw: str,
    ) -> None:
        """
        Process one client frame. Never raises; failures become error frames
        and the connection stays open.
        """
        try:
            frame = json.loads(raw)
            if not isinstance(frame, dict):
                raise ValueError("frame must be a JSON object")
            frame_type = frame.get("type")

            if frame_type == "status":
                self._check_sender(frame, user_id)
                self.connections.mark_alive(user_id)
                await _send(websocket, {"type": "status", "content": "connected", "userId": user_id})

            elif frame_type == "ping":
                self.connections.mark_alive(user_id)
                await _send(websocket, {"type": "ping"})

            elif frame_type == "pong":
                self.connections.mark_alive(user_id)

            elif frame_type in (MessageType.TEXT.value, MessageType.VOICE.value):
                await self._relay_message(websocket, user_id, frame)

            else:
                raise ValueError(f"unsupported frame type {frame_type!r}")

        except RelayRejected as exc:
            await _send(websocket, error_frame(str(exc)))
        except Exception:
            logger.exception(
                "WebSocket frame failed",
                extra=build_log_context(user_id=user_id),
            )
            await _send(websocket, error_frame(GENERIC_ERROR))

    def _check_sender(self, frame: dict, user_id: int) -> None:
        claimed = frame.get("senderId")
        if claimed is not None and claimed != user_id:
            raise RelayRejected(IDENTITY_ERROR)

    async def _relay_message(self, websocket: WebSocket, user_id: int, frame: dict) -> None:
        self._check_sender(frame, user_id)

        receiver_id = frame.get("receiverId")
        content = frame.get("content")
        if not isinstance(receiver_id, int) or isinstance(receiver_id, bool):
            raise ValueError("receiverId must be an integer")
        if not isinstance(content, str) or not content:
            raise ValueError("content must be a non-empty string")

        message = await run_in_threadpool(
            self.store,
            user_id,
            receiver_id,
            MessageType(frame["type"]),
            content,
        )

        await _send(websocket, sent_frame(message))
        delivered = await self.deliver(message)
        logger.info(
            "Relayed message %s (receiver online: %s)",
            message.id,
            delivered,
            extra=build_log_context(user_id=user_id),
        )


async def _send(websocket: WebSocket, frame: dict) -> None:
    await websocket.send_text(json.dumps(frame))
