"""Tests for the Zoom proxy and team chat endpoints."""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from corphub.db.models import Meeting, MeetingParticipant
from corphub.main import app
from corphub.services.zoom_service import ZoomClient, get_zoom_client


@pytest.fixture
def zoom_routes():
    """(method, path) -> httpx.Response served by a mocked Zoom API."""
    return {}


@pytest.fixture
def zoom_requests(client, zoom_routes):
    """Install a mocked Zoom client for the test; returns the recorded requests."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/token":
            return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
        seen.append(request)
        route = zoom_routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"code": 3001, "message": "Meeting does not exist"})
        return route

    zoom = ZoomClient(
        "account",
        "client-id",
        "client-secret",
        transport=httpx.MockTransport(handler),
        retry_base_delay=0,
        max_attempts=1,
    )
    app.dependency_overrides[get_zoom_client] = lambda: zoom
    return seen


@pytest.fixture
def linked_manager(db, org):
    """The employee's manager, linked to a Zoom contact."""
    org.manager.zoom_email = "peer@example.com"
    org.manager.zoom_user_id = "zoom-manager"
    db.commit()
    return org.manager


@pytest.fixture
def linked_meeting(db, org):
    """A company meeting organized by the manager, linked to Zoom meeting 555."""
    start = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    meeting = Meeting(
        title="Planning",
        start_time=start,
        end_time=start + timedelta(minutes=30),
        organizer_id=org.manager.id,
        company_id=org.company.id,
        zoom_meeting_id="555",
    )
    meeting.participants.append(MeetingParticipant(user_id=org.employee.id))
    db.add(meeting)
    db.commit()
    return meeting


@pytest.mark.asyncio
async def test_not_configured_answers_503(client, org, auth):
    response = await client.get("/api/zoom/contacts", headers=auth(org.employee))
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_proxy_requires_authentication(client, zoom_requests):
    response = await client.get("/api/zoom/contacts")
    assert response.status_code == 401
    assert zoom_requests == []


@pytest.mark.asyncio
async def test_create_meeting_returns_provider_json(client, org, auth, zoom_routes, zoom_requests):
    zoom_routes[("POST", "/v2/users/me/meetings")] = httpx.Response(
        201, json={"id": 123, "topic": "Standup", "join_url": "https://zoom.us/j/123"}
    )

    response = await client.post(
        "/api/zoom/meetings",
        headers=auth(org.manager),
        json={"topic": "Standup", "duration": 15},
    )

    assert response.status_code == 201
    assert response.json()["join_url"] == "https://zoom.us/j/123"
    sent = json.loads(zoom_requests[0].content)
    assert sent["topic"] == "Standup"
    assert sent["duration"] == 15


@pytest.mark.asyncio
async def test_provider_404_passes_through(client, org, auth, zoom_requests):
    response = await client.get("/api/zoom/meetings/999", headers=auth(org.super_admin))
    assert response.status_code == 404
    assert response.json()["detail"] == "Meeting does not exist"


@pytest.mark.asyncio
async def test_provider_error_maps_to_bad_gateway(client, org, auth, zoom_routes, zoom_requests):
    zoom_routes[("GET", "/v2/chat/users/me/contacts")] = httpx.Response(
        400, json={"code": 124, "message": "Invalid access token"}
    )

    response = await client.get("/api/zoom/contacts", headers=auth(org.employee))

    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to fetch contacts: Invalid access token"


@pytest.mark.asyncio
async def test_update_meeting_without_fields(client, org, auth, zoom_requests):
    response = await client.patch("/api/zoom/meetings/1", headers=auth(org.manager), json={})
    assert response.status_code == 400
    assert zoom_requests == []


@pytest.mark.asyncio
async def test_chat_history_with_contact(
    client, org, auth, linked_manager, zoom_routes, zoom_requests
):
    zoom_routes[("GET", "/v2/chat/users/me/messages")] = httpx.Response(
        200, json={"messages": [{"id": "m1", "message": "hi"}], "next_page_token": ""}
    )

    response = await client.get(
        "/api/zoom/chat/messages/peer@example.com", headers=auth(org.employee)
    )

    assert response.status_code == 200
    assert response.json() == [{"id": "m1", "message": "hi"}]
    params = zoom_requests[0].url.params
    assert params["to_contact"] == "peer@example.com"
    assert params["page_size"] == "50"


@pytest.mark.asyncio
async def test_voice_note_must_be_audio(client, org, auth, zoom_requests):
    response = await client.post(
        "/api/zoom/chat/voice",
        headers=auth(org.employee),
        files={"voice": ("notes.txt", b"hello", "text/plain")},
        data={"to_contact": "peer@example.com"},
    )
    assert response.status_code == 400
    assert zoom_requests == []


@pytest.mark.asyncio
async def test_voice_note_is_uploaded_and_sent(
    client, org, auth, linked_manager, zoom_routes, zoom_requests
):
    zoom_routes[("POST", "/v2/chat/users/me/messages/files")] = httpx.Response(
        201, json={"id": "f1"}
    )
    zoom_routes[("POST", "/v2/chat/users/me/messages")] = httpx.Response(
        201, json={"id": "msg-1"}
    )

    response = await client.post(
        "/api/zoom/chat/voice",
        headers=auth(org.employee),
        files={"voice": ("note.webm", b"\x1a\x45\xdf\xa3", "audio/webm")},
        data={"to_contact": "peer@example.com"},
    )

    assert response.status_code == 200
    assert response.json() == {"id": "msg-1"}
    assert [r.url.path for r in zoom_requests] == [
        "/v2/chat/users/me/messages/files",
        "/v2/chat/users/me/messages",
    ]


@pytest.mark.asyncio
async def test_raw_meeting_list_is_super_admin_only(client, org, auth, zoom_routes, zoom_requests):
    zoom_routes[("GET", "/v2/users/me/meetings")] = httpx.Response(
        200, json={"meetings": [{"id": 555}]}
    )

    response = await client.get("/api/zoom/meetings", headers=auth(org.admin))
    assert response.status_code == 403
    assert zoom_requests == []

    response = await client.get("/api/zoom/meetings", headers=auth(org.super_admin))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_provider_meeting_follows_local_visibility(
    client, org, auth, linked_meeting, zoom_routes, zoom_requests
):
    zoom_routes[("GET", "/v2/meetings/555")] = httpx.Response(
        200, json={"id": 555, "join_url": "https://zoom.us/j/555"}
    )

    response = await client.get("/api/zoom/meetings/555", headers=auth(org.employee))
    assert response.status_code == 200

    for outsider in (org.outside_admin, org.other_employee):
        response = await client.get("/api/zoom/meetings/555", headers=auth(outsider))
        assert response.status_code == 403
    assert len(zoom_requests) == 1

    # Meetings with no local counterpart are hidden from non super admins
    response = await client.get("/api/zoom/meetings/999", headers=auth(org.admin))
    assert response.status_code == 404
    assert len(zoom_requests) == 1


@pytest.mark.asyncio
async def test_only_meeting_managers_change_provider_meeting(
    client, org, auth, linked_meeting, zoom_routes, zoom_requests
):
    zoom_routes[("DELETE", "/v2/meetings/555")] = httpx.Response(204)
    zoom_routes[("PATCH", "/v2/meetings/555")] = httpx.Response(204)

    for intruder in (org.employee, org.outside_employee, org.outside_admin):
        response = await client.delete("/api/zoom/meetings/555", headers=auth(intruder))
        assert response.status_code == 403
        response = await client.patch(
            "/api/zoom/meetings/555", headers=auth(intruder), json={"topic": "Hijacked"}
        )
        assert response.status_code == 403
    assert zoom_requests == []

    response = await client.patch(
        "/api/zoom/meetings/555", headers=auth(org.manager), json={"topic": "Moved"}
    )
    assert response.status_code == 204
    response = await client.delete("/api/zoom/meetings/555", headers=auth(org.admin))
    assert response.status_code == 204
    assert [r.method for r in zoom_requests] == ["PATCH", "DELETE"]


@pytest.mark.asyncio
async def test_chat_send_follows_communication_rule(
    client, org, auth, linked_manager, zoom_routes, zoom_requests
):
    zoom_routes[("POST", "/v2/chat/users/me/messages")] = httpx.Response(
        201, json={"id": "msg-1"}
    )

    response = await client.post(
        "/api/zoom/chat/send",
        headers=auth(org.employee),
        json={"to_contact": "peer@example.com", "message": "hi"},
    )
    assert response.status_code == 200

    # other_employee reports to another manager
    response = await client.post(
        "/api/zoom/chat/send",
        headers=auth(org.other_employee),
        json={"to_contact": "zoom-manager", "message": "hi"},
    )
    assert response.status_code == 403

    response = await client.get(
        "/api/zoom/chat/messages/peer@example.com", headers=auth(org.outside_admin)
    )
    assert response.status_code == 403

    response = await client.post(
        "/api/zoom/chat/send",
        headers=auth(org.employee),
        json={"to_contact": "stranger@example.com", "message": "hi"},
    )
    assert response.status_code == 404
    assert len(zoom_requests) == 1


# =============================================================================
# Team chat (/api/v1)
# =============================================================================

@pytest.mark.asyncio
async def test_history_requires_destination(client, org, auth, zoom_requests):
    response = await client.get("/api/v1/messages", headers=auth(org.employee))
    assert response.status_code == 400
    assert zoom_requests == []


@pytest.mark.asyncio
async def test_history_page_for_channel(client, org, auth, zoom_routes, zoom_requests):
    zoom_routes[("GET", "/v2/chat/users/me/messages")] = httpx.Response(
        200, json={"messages": [], "next_page_token": "abc"}
    )

    response = await client.get(
        "/api/v1/messages?to_channel=ch-1&page_size=10&from_date=2026-01-01",
        headers=auth(org.employee),
    )

    assert response.status_code == 200
    assert response.json() == {"messages": [], "next_page_token": "abc"}
    params = zoom_requests[0].url.params
    assert params["to_channel"] == "ch-1"
    assert params["page_size"] == "10"
    assert params["from"] == "2026-01-01"


@pytest.mark.asyncio
async def test_history_page_size_is_bounded(client, org, auth, zoom_requests):
    response = await client.get(
        "/api/v1/messages?to_channel=ch-1&page_size=500", headers=auth(org.employee)
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_send_message_without_destination(client, org, auth, zoom_requests):
    response = await client.post(
        "/api/v1/messages", headers=auth(org.employee), json={"message": "hello"}
    )
    assert response.status_code == 400
    assert zoom_requests == []


@pytest.mark.asyncio
async def test_send_message_to_jid(client, org, auth, zoom_routes, zoom_requests):
    zoom_routes[("POST", "/v2/chat/users/me/messages")] = httpx.Response(
        201, json={"id": "msg-2"}
    )

    response = await client.post(
        "/api/v1/messages",
        headers=auth(org.employee),
        json={"message": "hello", "to_jid": "abc@xmpp.zoom.us", "file_ids": ["f9"]},
    )

    assert response.status_code == 201
    assert json.loads(zoom_requests[0].content) == {
        "message": "hello",
        "to_jid": "abc@xmpp.zoom.us",
        "file_ids": ["f9"],
    }


@pytest.mark.asyncio
async def test_delete_message_passes_destination(client, org, auth, zoom_routes, zoom_requests):
    zoom_routes[("DELETE", "/v2/chat/users/me/messages/m1")] = httpx.Response(204)

    response = await client.delete(
        "/api/v1/messages/m1?to_contact=peer@example.com", headers=auth(org.employee)
    )

    assert response.status_code == 204
    assert zoom_requests[0].url.params["to_contact"] == "peer@example.com"


@pytest.mark.asyncio
async def test_channel_lifecycle(client, org, auth, zoom_routes, zoom_requests):
    zoom_routes[("POST", "/v2/chat/channels")] = httpx.Response(201, json={"id": "ch-9"})
    zoom_routes[("PATCH", "/v2/chat/channels/ch-9/members")] = httpx.Response(204)
    zoom_routes[("GET", "/v2/chat/channels/ch-9/members")] = httpx.Response(
        200, json={"members": [{"email": "a@example.com"}]}
    )
    zoom_routes[("DELETE", "/v2/chat/channels/ch-9/members/a@example.com")] = httpx.Response(204)

    headers = auth(org.manager)
    response = await client.post("/api/v1/channels", headers=headers, json={"name": "Team"})
    assert response.status_code == 201
    assert json.loads(zoom_requests[-1].content) == {"name": "Team", "type": 3, "members": []}

    response = await client.post(
        "/api/v1/channels/ch-9/members",
        headers=headers,
        json={"members": [{"email": "a@example.com"}]},
    )
    assert response.status_code == 204

    response = await client.get("/api/v1/channels/ch-9/members", headers=headers)
    assert response.json() == [{"email": "a@example.com"}]

    response = await client.delete(
        "/api/v1/channels/ch-9/members/a@example.com", headers=headers
    )
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_upload_requires_destination(client, org, auth, zoom_requests):
    response = await client.post(
        "/api/v1/upload",
        headers=auth(org.employee),
        files={"file": ("report.pdf", b"%PDF-1.4", "application/pdf")},
    )
    assert response.status_code == 400
    assert zoom_requests == []
