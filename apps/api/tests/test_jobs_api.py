"""Tests for the provider sync job listing endpoints."""

import pytest

from corphub.db.enums import JobStatus, JobType
from corphub.services import job_service


@pytest.fixture
def jobs(db, org):
    own = job_service.schedule_job(
        db, JobType.PROVIDER_USER_SYNC, {"user_id": org.employee.id}, company_id=org.company.id
    )
    failed = job_service.schedule_job(
        db, JobType.PROVIDER_MEETING_CREATE, {"meeting_id": 1}, company_id=org.company.id
    )
    failed.status = JobStatus.FAILED.value
    foreign = job_service.schedule_job(
        db,
        JobType.PROVIDER_USER_SYNC,
        {"user_id": org.outside_employee.id},
        company_id=org.outside_company.id,
    )
    db.commit()
    return own, failed, foreign


@pytest.mark.asyncio
async def test_employees_cannot_view_jobs(client, org, auth, jobs):
    response = await client.get("/api/jobs", headers=auth(org.manager))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_company_admin_sees_own_company_jobs(client, org, auth, jobs):
    own, failed, foreign = jobs

    response = await client.get("/api/jobs", headers=auth(org.admin))
    assert response.status_code == 200
    assert {j["id"] for j in response.json()} == {own.id, failed.id}

    response = await client.get(f"/api/jobs/{foreign.id}", headers=auth(org.admin))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_super_admin_filters_jobs(client, org, auth, jobs):
    own, failed, foreign = jobs
    headers = auth(org.super_admin)

    response = await client.get("/api/jobs", headers=headers)
    assert len(response.json()) == 3

    response = await client.get("/api/jobs?status=failed", headers=headers)
    assert [j["id"] for j in response.json()] == [failed.id]

    response = await client.get("/api/jobs?job_type=provider_user_sync", headers=headers)
    assert {j["id"] for j in response.json()} == {own.id, foreign.id}

    response = await client.get(f"/api/jobs/{foreign.id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["payload"] == {"user_id": org.outside_employee.id}


@pytest.mark.asyncio
async def test_unknown_status_filter_is_rejected(client, org, auth, jobs):
    response = await client.get("/api/jobs?status=exploded", headers=auth(org.super_admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["connections"] == 0
