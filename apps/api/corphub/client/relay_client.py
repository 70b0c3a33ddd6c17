"""
Python client for the realtime relay.

Connects to /ws with the same bearer token used for REST calls, announces
itself with a status frame, keeps the connection alive, hands every other
frame to a callback and reconnects with bounded exponential backoff.
"""

import asyncio
import contextlib
import inspect
import json
import logging
from typing import Any, Awaitable, Callable

import websockets
from websockets.exceptions import ConnectionClosed, InvalidStatus

from corphub.services.http_service import backoff_delay

logger = logging.getLogger(__name__)

# Server closed the socket because of auth failure, or a newer connection took over
CLOSE_UNAUTHORIZED = 4001
CLOSE_REPLACED = 4000
FINAL_CLOSE_CODES = frozenset({CLOSE_UNAUTHORIZED, CLOSE_REPLACED})

FrameHandler = Callable[[dict], Awaitable[None] | None]


class ReconnectPolicy:
    """
    Bounded exponential backoff with a simple circuit breaker.

    Delays follow base_delay * 2**attempt (plus jitter), capped at
    max_delay. After max_attempts consecutive failures the circuit opens
    and next_delay() returns None. reset() is called on every successful
    connection.
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_attempts: int = 10,
        jitter: bool = True,
    ):
        if base_delay < 0 or max_delay < base_delay:
            raise ValueError("expected 0 <= base_delay <= max_delay")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self.jitter = jitter
        self.attempts = 0

    @property
    def circuit_open(self) -> bool:
        return self.attempts >= self.max_attempts

    def next_delay(self) -> float | None:
        """Delay before the next reconnect, or None once the circuit is open."""
        if self.circuit_open:
            return None
        delay = backoff_delay(
            self.attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter=self.jitter,
        )
        self.attempts += 1
        return delay

    def reset(self) -> None:
        self.attempts = 0


class RelayClient:
    """Reconnecting relay connection for one logged-in user."""

    def __init__(
        self,
        url: str,
        token: str,
        on_frame: FrameHandler,
        *,
        policy: ReconnectPolicy | None = None,
        ping_interval: float = 25.0,
        connect: Callable[..., Any] = websockets.connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url = url
        self.token = token
        self.on_frame = on_frame
        self.policy = policy or ReconnectPolicy()
        self.ping_interval = ping_interval
        self._connect = connect
        self._sleep = sleep
        self._websocket = None
        self._stopped = False
        self.last_close_code: int | None = None

    @property
    def connected(self) -> bool:
        return self._websocket is not None

    async def run(self) -> None:
        """
        Connect and stay connected until stop(), an auth rejection, a
        replacement by a newer connection, or the circuit opening.
        """
        while not self._stopped:
            try:
                async with self._connect(
                    self.url,
                    additional_headers={"Authorization": f"Bearer {self.token}"},
                ) as websocket:
                    self._websocket = websocket
                    self.policy.reset()
                    await self._send(websocket, {"type": "status"})
                    await self._session(websocket)
                    self.last_close_code = websocket.close_code
            except InvalidStatus as exc:
                status = exc.response.status_code
                logger.warning("Relay handshake rejected with HTTP %s", status)
                if status in (401, 403):
                    self.last_close_code = CLOSE_UNAUTHORIZED
            except ConnectionClosed as exc:
                self.last_close_code = exc.rcvd.code if exc.rcvd else None
            except OSError as exc:
                logger.warning("Relay connection failed: %s", exc.__class__.__name__)
                self.last_close_code = None
            finally:
                self._websocket = None

            if self._stopped or self.last_close_code in FINAL_CLOSE_CODES:
                break

            delay = self.policy.next_delay()
            if delay is None:
                logger.error(
                    "Relay reconnect gave up after %d attempts", self.policy.max_attempts
                )
                break
            logger.info("Relay reconnecting in %.1fs", delay)
            await self._sleep(delay)

    async def stop(self) -> None:
        """Stop reconnecting and close the current connection (logout)."""
        self._stopped = True
        if self._websocket is not None:
            await self._websocket.close()

    async def send_message(self, receiver_id: int, content: str, type: str = "text") -> None:
        """Send a text or voice message frame. Raises RuntimeError when offline."""
        if self._websocket is None:
            raise RuntimeError("relay is not connected")
        await self._send(
            self._websocket,
            {"type": type, "receiverId": receiver_id, "content": content},
        )

    async def _session(self, websocket) -> None:
        pinger = asyncio.create_task(self._ping_loop(websocket))
        try:
            async for raw in websocket:
                try:
                    frame = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning("Relay sent a frame that is not JSON; ignored")
                    continue
                if not isinstance(frame, dict):
                    continue
                if frame.get("type") == "ping":
                    await self._send(websocket, {"type": "pong"})
                    continue
                await self._dispatch(frame)
        finally:
            pinger.cancel()
            with contextlib.suppress(asyncio.CancelledError, ConnectionClosed):
                await pinger

    async def _dispatch(self, frame: dict) -> None:
        # A failing callback drops the frame, not the connection
        try:
            result = self.on_frame(frame)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Relay frame handler failed for %r frame", frame.get("type"))

    async def _ping_loop(self, websocket) -> None:
        while True:
            await asyncio.sleep(self.ping_interval)
            await self._send(websocket, {"type": "ping"})

    @staticmethod
    async def _send(websocket, frame: dict) -> None:
        await websocket.send(json.dumps(frame))
