"""Zoom integration service.

Server-to-Server OAuth client for the Zoom REST API: provider users,
meetings, team chat (messages, channels, members, files) and contacts.

All calls go through request_with_retries. Failures surface as ZoomAPIError
carrying the provider status code and message.
"""

import asyncio
import logging
import time
from functools import lru_cache
from typing import Any, Callable

import httpx

from corphub.core.config import settings
from corphub.services.http_service import request_with_retries

logger = logging.getLogger(__name__)

# Refresh the access token this long before Zoom says it expires
TOKEN_REFRESH_BUFFER_SECONDS = 5 * 60

DEFAULT_MEETING_SETTINGS = {
    "host_video": True,
    "participant_video": True,
    "join_before_host": False,
    "mute_upon_entry": True,
    "watermark": False,
    "use_pmi": False,
    "approval_type": 0,
    "audio": "both",
    "auto_recording": "none",
}


class ZoomAPIError(Exception):
    """Zoom returned an error response (or could not be reached)."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ZoomNotConfiguredError(ZoomAPIError):
    def __init__(self):
        super().__init__(503, "Zoom integration is not configured")


class ZoomClient:
    """Async Zoom API client with a cached S2S OAuth access token."""

    def __init__(
        self,
        account_id: str,
        client_id: str,
        client_secret: str,
        *,
        api_base: str = "https://api.zoom.us/v2",
        oauth_url: str = "https://zoom.us/oauth/token",
        transport: httpx.AsyncBaseTransport | None = None,
        max_attempts: int = 3,
        retry_base_delay: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.account_id = account_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base = api_base.rstrip("/")
        self.oauth_url = oauth_url
        self._transport = transport
        self._max_attempts = max_attempts
        self._retry_base_delay = retry_base_delay
        self._clock = clock

        self._access_token: str | None = None
        self._token_expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.account_id and self.client_id and self.client_secret)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=30.0)

    # =========================================================================
    # OAuth
    # =========================================================================

    def _token_valid(self) -> bool:
        return (
            self._access_token is not None
            and self._clock() < self._token_expires_at - TOKEN_REFRESH_BUFFER_SECONDS
        )

    async def get_access_token(self) -> str:
        """Return the cached token, fetching a new one when it is (nearly) expired."""
        if not self.configured:
            raise ZoomNotConfiguredError()

        if self._token_valid():
            return self._access_token  # type: ignore[return-value]

        async with self._token_lock:
            # Another task may have refreshed while we waited
            if self._token_valid():
                return self._access_token  # type: ignore[return-value]

            try:
                async with self._client() as client:
                    response = await request_with_retries(
                        lambda: client.post(
                            self.oauth_url,
                            params={
                                "grant_type": "account_credentials",
                                "account_id": self.account_id,
                            },
                            auth=(self.client_id, self.client_secret),
                        ),
                        max_attempts=self._max_attempts,
                        base_delay=self._retry_base_delay,
                    )
            except httpx.RequestError as exc:
                raise ZoomAPIError(502, f"Zoom unreachable: {exc.__class__.__name__}") from exc

            if response.status_code != 200:
                logger.warning("Zoom token request failed with %s", response.status_code)
                raise ZoomAPIError(response.status_code, _error_message(response))

            data = response.json()
            self._access_token = data["access_token"]
            self._token_expires_at = self._clock() + int(data.get("expires_in", 3600))
            logger.info("Zoom access token refreshed")
            return self._access_token

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
        data: dict | None = None,
        files: dict | None = None,
    ) -> dict:
        token = await self.get_access_token()
        headers = {"Authorization": f"Bearer {token}"}
        url = f"{self.api_base}{path}"

        try:
            async with self._client() as client:
                response = await request_with_retries(
                    lambda: client.request(
                        method,
                        url,
                        headers=headers,
                        json=json,
                        params=params,
                        data=data,
                        files=files,
                    ),
                    max_attempts=self._max_attempts,
                    base_delay=self._retry_base_delay,
                )
        except httpx.RequestError as exc:
            raise ZoomAPIError(502, f"Zoom unreachable: {exc.__class__.__name__}") from exc

        if response.status_code >= 400:
            raise ZoomAPIError(response.status_code, _error_message(response))
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # =========================================================================
    # Users
    # =========================================================================

    async def get_user_by_email(self, email: str) -> dict | None:
        """Look up a Zoom user; None when Zoom has no such user."""
        try:
            return await self._request("GET", f"/users/{email}")
        except ZoomAPIError as exc:
            if exc.status_code == 404:
                return None
            raise

    async def create_user(self, email: str, first_name: str, last_name: str) -> dict:
        """Create a basic (type 1) Zoom user."""
        return await self._request(
            "POST",
            "/users",
            json={
                "action": "create",
                "user_info": {
                    "email": email,
                    "type": 1,
                    "first_name": first_name,
                    "last_name": last_name,
                },
            },
        )

    # =========================================================================
    # Meetings
    # =========================================================================

    async def create_meeting(
        self,
        topic: str,
        start_time: str | None = None,
        duration: int = 60,
        password: str | None = None,
        agenda: str | None = None,
        user_id: str = "me",
    ) -> dict:
        """Create a scheduled meeting (start_time as ISO string, UTC)."""
        payload: dict[str, Any] = {
            "topic": topic,
            "type": 2,
            "duration": duration,
            "timezone": "UTC",
            "settings": dict(DEFAULT_MEETING_SETTINGS),
        }
        if start_time:
            payload["start_time"] = start_time
        if password:
            payload["password"] = password
        if agenda:
            payload["agenda"] = agenda
        return await self._request("POST", f"/users/{user_id}/meetings", json=payload)

    async def list_meetings(self, user_id: str = "me") -> list[dict]:
        data = await self._request(
            "GET",
            f"/users/{user_id}/meetings",
            params={"type": "scheduled", "page_size": 30},
        )
        return data.get("meetings", [])

    async def get_meeting(self, meeting_id: str) -> dict:
        return await self._request("GET", f"/meetings/{meeting_id}")

    async def update_meeting(self, meeting_id: str, fields: dict) -> None:
        await self._request("PATCH", f"/meetings/{meeting_id}", json=fields)

    async def delete_meeting(self, meeting_id: str) -> None:
        await self._request("DELETE", f"/meetings/{meeting_id}")

    # =========================================================================
    # Team chat
    # =========================================================================

    async def send_chat_message(self, payload: dict) -> dict:
        """Send a chat message; payload carries message plus to_jid/to_contact/to_channel."""
        return await self._request("POST", "/chat/users/me/messages", json=payload)

    async def list_chat_messages(
        self,
        *,
        to_jid: str | None = None,
        to_contact: str | None = None,
        to_channel: str | None = None,
        from_date: str | None = None,
        to_date: str | None = None,
        page_size: int = 30,
        next_page_token: str | None = None,
    ) -> dict:
        params: dict[str, Any] = {"page_size": page_size}
        for key, value in (
            ("to_jid", to_jid),
            ("to_contact", to_contact),
            ("to_channel", to_channel),
            ("from", from_date),
            ("to", to_date),
            ("next_page_token", next_page_token),
        ):
            if value:
                params[key] = value
        data = await self._request("GET", "/chat/users/me/messages", params=params)
        return {
            "messages": data.get("messages", []),
            "next_page_token": data.get("next_page_token"),
        }

    async def update_chat_message(self, message_id: str, message: str, destination: dict) -> None:
        await self._request(
            "PATCH",
            f"/chat/users/me/messages/{message_id}",
            json={"message": message, **destination},
        )

    async def delete_chat_message(self, message_id: str, destination: dict) -> None:
        await self._request(
            "DELETE", f"/chat/users/me/messages/{message_id}", params=destination
        )

    async def list_channels(self, user_id: str | None = None) -> list[dict]:
        path = f"/chat/users/{user_id}/channels" if user_id else "/chat/channels"
        data = await self._request("GET", path)
        return data.get("channels", [])

    async def create_channel(self, name: str, type: int = 3, members: list | None = None) -> dict:
        return await self._request(
            "POST",
            "/chat/channels",
            json={"name": name, "type": type, "members": members or []},
        )

    async def update_channel(self, channel_id: str, updates: dict) -> None:
        await self._request("PATCH", f"/chat/channels/{channel_id}", json=updates)

    async def list_channel_members(self, channel_id: str) -> list[dict]:
        data = await self._request("GET", f"/chat/channels/{channel_id}/members")
        return data.get("members", [])

    async def add_channel_members(self, channel_id: str, members: list[dict]) -> None:
        await self._request(
            "PATCH", f"/chat/channels/{channel_id}/members", json={"members": members}
        )

    async def remove_channel_member(self, channel_id: str, member_id: str) -> None:
        await self._request("DELETE", f"/chat/channels/{channel_id}/members/{member_id}")

    async def upload_file(
        self,
        filename: str,
        content: bytes,
        content_type: str,
        destination: dict,
    ) -> dict:
        return await self._request(
            "POST",
            "/chat/users/me/files",
            files={"files": (filename, content, content_type)},
            data=destination,
        )

    async def send_voice_message(
        self,
        to_contact: str,
        filename: str,
        content: bytes,
        content_type: str,
    ) -> dict:
        """Upload an audio file, then send it to a contact as a chat message."""
        uploaded = await self._request(
            "POST",
            "/chat/users/me/messages/files",
            files={"files": (filename, content, content_type)},
        )
        return await self.send_chat_message(
            {
                "message": "Voice message",
                "to_contact": to_contact,
                "file_ids": [uploaded["id"]],
            }
        )

    async def list_contacts(self) -> list[dict]:
        data = await self._request(
            "GET", "/chat/users/me/contacts", params={"page_size": 50}
        )
        return data.get("contacts", [])


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("reason") or body)
    return str(body)


@lru_cache
def get_zoom_client() -> ZoomClient:
    """Process-wide client so the access token cache is shared."""
    return ZoomClient(
        account_id=settings.ZOOM_ACCOUNT_ID,
        client_id=settings.ZOOM_CLIENT_ID,
        client_secret=settings.ZOOM_CLIENT_SECRET,
        api_base=settings.ZOOM_API_BASE,
        oauth_url=settings.ZOOM_OAUTH_URL,
    )
