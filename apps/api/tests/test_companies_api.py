"""Tests for company CRUD and the org chart."""

import pytest

from corphub.db.models import Company, Message, User


@pytest.mark.asyncio
async def test_super_admin_lists_all_companies(client, org, auth):
    response = await client.get("/api/companies", headers=auth(org.super_admin))
    assert response.status_code == 200
    assert [c["name"] for c in response.json()] == ["Acme", "Globex"]


@pytest.mark.asyncio
async def test_members_list_only_their_company(client, org, auth):
    response = await client.get("/api/companies", headers=auth(org.employee))
    assert [c["id"] for c in response.json()] == [org.company.id]


@pytest.mark.asyncio
async def test_foreign_company_is_forbidden(client, org, auth):
    response = await client.get(
        f"/api/companies/{org.outside_company.id}", headers=auth(org.admin)
    )
    assert response.status_code == 403

    response = await client.get("/api/companies/9999", headers=auth(org.super_admin))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_only_super_admin_creates_companies(client, org, auth):
    response = await client.post(
        "/api/companies", headers=auth(org.admin), json={"name": "Initech"}
    )
    assert response.status_code == 403

    response = await client.post(
        "/api/companies",
        headers=auth(org.super_admin),
        json={"name": "Initech", "description": "Software"},
    )
    assert response.status_code == 201
    assert response.json()["name"] == "Initech"


@pytest.mark.asyncio
async def test_company_admin_updates_own_company(client, org, auth):
    response = await client.put(
        f"/api/companies/{org.company.id}",
        headers=auth(org.admin),
        json={"description": "Widgets"},
    )
    assert response.status_code == 200
    assert response.json()["description"] == "Widgets"
    assert response.json()["name"] == "Acme"

    response = await client.put(
        f"/api/companies/{org.outside_company.id}",
        headers=auth(org.admin),
        json={"name": "Taken over"},
    )
    assert response.status_code == 403

    response = await client.put(
        f"/api/companies/{org.company.id}",
        headers=auth(org.manager),
        json={"name": "Managers Inc"},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_org_chart_nests_reports_under_managers(client, org, auth, make_user):
    from corphub.db.enums import Role

    floater = make_user(Role.EMPLOYEE, org.company, username="floater")

    response = await client.get(
        f"/api/companies/{org.company.id}/org-chart", headers=auth(org.employee)
    )
    assert response.status_code == 200
    chart = response.json()

    assert chart["company"]["id"] == org.company.id
    assert [a["id"] for a in chart["company_admins"]] == [org.admin.id]

    managers = {m["id"]: m for m in chart["managers"]}
    assert set(managers) == {org.manager.id, org.other_manager.id}
    assert [r["id"] for r in managers[org.manager.id]["reports"]] == [org.employee.id]
    assert [r["id"] for r in managers[org.other_manager.id]["reports"]] == [
        org.other_employee.id
    ]
    assert [u["id"] for u in chart["unassigned"]] == [floater.id]


@pytest.mark.asyncio
async def test_org_chart_of_foreign_company_is_forbidden(client, org, auth):
    response = await client.get(
        f"/api/companies/{org.outside_company.id}/org-chart", headers=auth(org.manager)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_company_cascades(client, org, auth, db):
    response = await client.post(
        "/api/messages",
        headers=auth(org.outside_admin),
        json={"receiverId": org.outside_employee.id, "content": "bye"},
    )
    assert response.status_code == 201

    response = await client.delete(
        f"/api/companies/{org.outside_company.id}", headers=auth(org.admin)
    )
    assert response.status_code == 403

    response = await client.delete(
        f"/api/companies/{org.outside_company.id}", headers=auth(org.super_admin)
    )
    assert response.status_code == 204

    db.expire_all()
    assert db.get(Company, org.outside_company.id) is None
    assert db.query(User).filter(User.company_id == org.outside_company.id).count() == 0
    assert db.query(Message).count() == 0
