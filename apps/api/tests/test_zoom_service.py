"""Tests for the Zoom API client (token cache, error mapping, retries)."""

import httpx
import pytest

from corphub.services.zoom_service import (
    TOKEN_REFRESH_BUFFER_SECONDS,
    ZoomAPIError,
    ZoomClient,
    ZoomNotConfiguredError,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class ZoomStub:
    """MockTransport handler recording requests; routes map (method, path) -> response."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []
        self.token_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/token":
            self.token_calls += 1
            return httpx.Response(
                200, json={"access_token": f"token-{self.token_calls}", "expires_in": 3600}
            )
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"code": 1001, "message": "Not found"})
        if callable(route):
            return route(request)
        if isinstance(route, list):
            return route.pop(0)
        return route

    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path != "/oauth/token"]


def make_client(stub: ZoomStub, **kwargs) -> ZoomClient:
    return ZoomClient(
        "account",
        "client-id",
        "client-secret",
        transport=httpx.MockTransport(stub),
        retry_base_delay=0,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_token_is_fetched_once_and_reused():
    stub = ZoomStub({("GET", "/v2/chat/users/me/contacts"): httpx.Response(200, json={"contacts": []})})
    zoom = make_client(stub)

    await zoom.list_contacts()
    await zoom.list_contacts()

    assert stub.token_calls == 1
    token_request = stub.requests[0]
    assert token_request.url.params["grant_type"] == "account_credentials"
    assert token_request.url.params["account_id"] == "account"
    assert token_request.headers["Authorization"].startswith("Basic ")
    for request in stub.api_requests():
        assert request.headers["Authorization"] == "Bearer token-1"


@pytest.mark.asyncio
async def test_token_is_refreshed_before_expiry():
    clock = FakeClock()
    stub = ZoomStub()
    zoom = make_client(stub, clock=clock)

    assert await zoom.get_access_token() == "token-1"
    clock.now += 3600 - TOKEN_REFRESH_BUFFER_SECONDS - 1
    assert await zoom.get_access_token() == "token-1"
    clock.now += 2
    assert await zoom.get_access_token() == "token-2"


@pytest.mark.asyncio
async def test_unconfigured_client_raises_503():
    zoom = ZoomClient("", "", "")
    with pytest.raises(ZoomNotConfiguredError) as exc_info:
        await zoom.list_contacts()
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_token_failure_surfaces_provider_status():
    def handler(request):
        return httpx.Response(401, json={"reason": "Invalid client_id or client_secret"})

    zoom = ZoomClient("a", "b", "c", transport=httpx.MockTransport(handler), retry_base_delay=0)
    with pytest.raises(ZoomAPIError) as exc_info:
        await zoom.get_access_token()

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Invalid client_id or client_secret"


@pytest.mark.asyncio
async def test_missing_user_returns_none():
    zoom = make_client(ZoomStub())
    assert await zoom.get_user_by_email("nobody@example.com") is None


@pytest.mark.asyncio
async def test_error_response_raises_with_message():
    stub = ZoomStub(
        {("POST", "/v2/users"): httpx.Response(400, json={"code": 1005, "message": "User already exists"})}
    )
    zoom = make_client(stub)

    with pytest.raises(ZoomAPIError) as exc_info:
        await zoom.create_user("a@example.com", "A", "B")

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "User already exists"


@pytest.mark.asyncio
async def test_server_errors_are_retried():
    stub = ZoomStub(
        {
            ("GET", "/v2/meetings/42"): [
                httpx.Response(503),
                httpx.Response(200, json={"id": 42, "topic": "Sync"}),
            ]
        }
    )
    zoom = make_client(stub)

    meeting = await zoom.get_meeting("42")

    assert meeting["topic"] == "Sync"
    assert len(stub.api_requests()) == 2


@pytest.mark.asyncio
async def test_unreachable_zoom_maps_to_502():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    zoom = ZoomClient(
        "a", "b", "c", transport=httpx.MockTransport(handler), retry_base_delay=0, max_attempts=1
    )
    with pytest.raises(ZoomAPIError) as exc_info:
        await zoom.get_access_token()
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_create_meeting_payload():
    import json

    def create(request):
        body = json.loads(request.content)
        assert body["topic"] == "Quarterly review"
        assert body["type"] == 2
        assert body["duration"] == 45
        assert body["start_time"] == "2026-03-02T10:00:00Z"
        assert body["settings"]["join_before_host"] is False
        return httpx.Response(201, json={"id": 777, "join_url": "https://zoom.us/j/777"})

    zoom = make_client(ZoomStub({("POST", "/v2/users/me/meetings"): create}))

    data = await zoom.create_meeting(
        "Quarterly review", start_time="2026-03-02T10:00:00Z", duration=45
    )
    assert data["id"] == 777


@pytest.mark.asyncio
async def test_delete_returns_empty_on_204():
    stub = ZoomStub({("DELETE", "/v2/meetings/42"): httpx.Response(204)})
    zoom = make_client(stub)
    assert await zoom.delete_meeting("42") is None


@pytest.mark.asyncio
async def test_voice_message_uploads_then_sends():
    import json

    def send(request):
        body = json.loads(request.content)
        assert body == {
            "message": "Voice message",
            "to_contact": "peer@example.com",
            "file_ids": ["file-1"],
        }
        return httpx.Response(201, json={"id": "msg-1"})

    stub = ZoomStub(
        {
            ("POST", "/v2/chat/users/me/messages/files"): httpx.Response(201, json={"id": "file-1"}),
            ("POST", "/v2/chat/users/me/messages"): send,
        }
    )
    zoom = make_client(stub)

    result = await zoom.send_voice_message("peer@example.com", "note.webm", b"\x00\x01", "audio/webm")

    assert result == {"id": "msg-1"}
    upload = stub.api_requests()[0]
    assert upload.headers["content-type"].startswith("multipart/form-data")
