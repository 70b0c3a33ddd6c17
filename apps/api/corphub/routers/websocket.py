"""
WebSocket router for the realtime message relay.

Provides a WebSocket endpoint that:
1. Authenticates users via JWT (query parameter or bearer header)
2. Keeps one live connection per user in the app's registry
3. Relays text/voice frames and answers status/ping/pong frames
"""

import logging
from typing import Callable

import jwt
from fastapi import APIRouter, HTTPException, Query, WebSocket
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from corphub.core.deps import load_session
from corphub.core.security import decode_session_token, parse_bearer
from corphub.core.structured_logging import build_log_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


def _authenticate(token: str | None, session_factory: Callable[[], Session]):
    """
    Resolve the session for a handshake, or None when it is not authenticated.

    The database session is closed before returning. Database failures
    propagate to the caller.
    """
    if not token:
        return None
    try:
        payload = decode_session_token(token)
    except jwt.InvalidTokenError:
        return None
    with session_factory() as db:
        try:
            return load_session(db, payload)
        except HTTPException:
            # Malformed subject, deleted user or unknown role
            return None


@router.websocket("/ws")
async def relay_socket(
    websocket: WebSocket,
    token: str | None = Query(None),
):
    """
    Realtime relay endpoint.

    Unauthenticated sockets are closed with 4001 before they are
    registered; a handshake that fails for any other reason closes
    with 1011. Frames:
    - {"type": "status"} -> {"type": "status", "content": "connected", "userId": ...}
    - {"type": "ping"} / {"type": "pong"} -> liveness
    - {"type": "text"|"voice", "receiverId": ..., "content": ...} -> persisted,
      acknowledged with {"type": "sent", ...} and forwarded when the receiver is online
    """
    connections = websocket.app.state.connections
    relay = websocket.app.state.relay

    if not token:
        token = parse_bearer(websocket.headers.get("authorization"))
    try:
        session = await run_in_threadpool(_authenticate, token, relay.session_factory)
    except Exception:
        logger.exception("WebSocket handshake failed")
        await websocket.close(code=1011, reason="Server error")
        return
    if session is None:
        await websocket.close(code=4001, reason="Authentication required")
        return

    user_id = session.user_id

    await websocket.accept()
    await connections.connect(websocket, user_id)
    logger.info(
        "WebSocket connected",
        extra=build_log_context(user_id=user_id, company_id=session.company_id),
    )

    try:
        while True:
            event = await websocket.receive()
            if event["type"] == "websocket.disconnect":
                break
            raw = event.get("text")
            if raw is None and event.get("bytes") is not None:
                raw = event["bytes"].decode("utf-8", errors="replace")
            if raw is None:
                continue
            await relay.handle_frame(websocket, user_id, raw)
    finally:
        await connections.disconnect(websocket, user_id)
        logger.info("WebSocket disconnected", extra=build_log_context(user_id=user_id))
