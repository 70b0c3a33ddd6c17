"""
WebSocket connection registry for the realtime message relay.

Maps each online user to their single live connection, plus a liveness
flag used by the heartbeat sweep. One registry exists per application
(``app.state.connections``); tests build their own.
"""

import asyncio
import json
import logging
from dataclasses import dataclass

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


@dataclass
class Connection:
    websocket: WebSocket
    user_id: int
    alive: bool = True


class ConnectionManager:
    """Manages the live WebSocket connection of each user."""

    def __init__(self):
        # user_id -> active connection
        self._connections: dict[int, Connection] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: int) -> None:
        """
        Register an accepted WebSocket for user_id.

        A newer connection replaces any previous one; the old socket is
        closed so the client stops using it.
        """
        async with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = Connection(websocket=websocket, user_id=user_id)

        if previous and previous.websocket is not websocket:
            logger.info("Replacing existing connection for user %s", user_id)
            await _close_quietly(previous.websocket, code=4000)

    async def disconnect(self, websocket: WebSocket, user_id: int) -> None:
        """Remove the mapping, but only while it still points at this socket."""
        async with self._lock:
            current = self._connections.get(user_id)
            if current and current.websocket is websocket:
                del self._connections[user_id]

    def is_online(self, user_id: int) -> bool:
        conn = self._connections.get(user_id)
        return conn is not None and _is_open(conn.websocket)

    def online_user_ids(self) -> list[int]:
        return [uid for uid, conn in self._connections.items() if _is_open(conn.websocket)]

    def mark_alive(self, user_id: int) -> None:
        conn = self._connections.get(user_id)
        if conn:
            conn.alive = True

    async def send_to_user(self, user_id: int, message: dict) -> bool:
        """
        Send a JSON frame to user_id if they have a live connection.

        Returns True when the frame was written. Stale sockets are dropped
        from the registry instead of raising.
        """
        conn = self._connections.get(user_id)
        if conn is None:
            return False

        if not _is_open(conn.websocket):
            await self.disconnect(conn.websocket, user_id)
            return False

        try:
            await conn.websocket.send_text(json.dumps(message))
        except Exception as exc:
            logger.warning(
                "Send to user %s failed: %s", user_id, exc.__class__.__name__
            )
            await self.disconnect(conn.websocket, user_id)
            return False
        return True

    async def broadcast(self, user_ids: list[int], message: dict) -> None:
        """Send the same frame to several users (offline ones are skipped)."""
        for user_id in user_ids:
            await self.send_to_user(user_id, message)

    async def sweep(self) -> list[int]:
        """
        One heartbeat round.

        Connections that have not answered since the previous round are
        closed and removed. Every other connection is marked not-alive and
        pinged; a ping or pong from the client marks it alive again.
        Returns the ids of the users that were dropped.
        """
        async with self._lock:
            snapshot = list(self._connections.values())

        dropped: list[int] = []
        for conn in snapshot:
            if not conn.alive or not _is_open(conn.websocket):
                dropped.append(conn.user_id)
                await self.disconnect(conn.websocket, conn.user_id)
                await _close_quietly(conn.websocket, code=1001)
                continue
            conn.alive = False
            await self.send_to_user(conn.user_id, {"type": "ping"})

        if dropped:
            logger.info("Heartbeat dropped %d unresponsive connections", len(dropped))
        return dropped

    async def run_heartbeat(self, interval: float) -> None:
        """Sweep forever every `interval` seconds (cancel to stop)."""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Heartbeat sweep failed")

    def get_total_connections(self) -> int:
        """Get total number of registered connections."""
        return len(self._connections)


def _is_open(websocket: WebSocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


async def _close_quietly(websocket: WebSocket, code: int) -> None:
    if websocket.application_state == WebSocketState.DISCONNECTED:
        return
    try:
        await websocket.close(code=code)
    except Exception:
        # Peer already gone
        pass
