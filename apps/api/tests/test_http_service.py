"""Tests for HTTP retry helper."""

import httpx
import pytest

from corphub.services.http_service import backoff_delay, request_with_retries


@pytest.mark.asyncio
async def test_request_with_retries_retries_on_status():
    req = httpx.Request("POST", "https://example.com")
    responses = [
        httpx.Response(500, request=req),
        httpx.Response(200, json={"ok": True}, request=req),
    ]
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        return responses.pop(0)

    response = await request_with_retries(
        request_fn,
        max_attempts=2,
        base_delay=0,
        max_delay=0,
    )

    assert calls["count"] == 2
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_request_with_retries_retries_on_request_error():
    req = httpx.Request("POST", "https://example.com")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("boom", request=req)
        return httpx.Response(200, json={"ok": True}, request=req)

    response = await request_with_retries(
        request_fn,
        max_attempts=2,
        base_delay=0,
        max_delay=0,
    )

    assert calls["count"] == 2
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_request_with_retries_raises_after_max_attempts():
    req = httpx.Request("POST", "https://example.com")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        raise httpx.ConnectError("boom", request=req)

    with pytest.raises(httpx.RequestError):
        await request_with_retries(
            request_fn,
            max_attempts=2,
            base_delay=0,
            max_delay=0,
        )

    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_last_retryable_response_is_returned():
    req = httpx.Request("GET", "https://example.com")
    delays = []

    async def request_fn():
        return httpx.Response(503, request=req)

    async def fake_sleep(seconds):
        delays.append(seconds)

    response = await request_with_retries(
        request_fn,
        max_attempts=3,
        base_delay=1.0,
        max_delay=10.0,
        sleep=fake_sleep,
    )

    assert response.status_code == 503
    assert len(delays) == 2
    assert 1.0 <= delays[0] <= 1.5
    assert 2.0 <= delays[1] <= 3.0


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    req = httpx.Request("GET", "https://example.com")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        return httpx.Response(404, request=req)

    response = await request_with_retries(request_fn, max_attempts=3, base_delay=0)

    assert calls["count"] == 1
    assert response.status_code == 404


def test_backoff_delay_without_jitter():
    delays = [backoff_delay(n, base_delay=1.0, max_delay=30.0, jitter=False) for n in range(7)]
    assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0]


def test_backoff_delay_jitter_stays_under_cap():
    for attempt in range(10):
        delay = backoff_delay(attempt, base_delay=1.0, max_delay=30.0)
        floor = min(30.0, 2**attempt)
        assert floor <= delay <= 30.0
