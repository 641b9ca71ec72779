"""Task endpoints: authorization, tenant isolation and audit side effects."""

import pytest
from httpx import AsyncClient

from app.core.database.engine import AsyncSessionLocal
from app.features.audit.models import AuditAction, AuditResource
from app.features.audit.service import AuditRecorder
from app.features.tasks.models import Task


pytestmark = pytest.mark.asyncio


async def _audit_entries(organization_id: str, **filters):
    async with AsyncSessionLocal() as session:
        return await AuditRecorder(session).query(organization_id, **filters)


async def _load_task(task_id: str):
    async with AsyncSessionLocal() as session:
        return await session.get(Task, task_id)


async def _create_task(client: AsyncClient, headers: dict, **overrides) -> dict:
    body = {"title": "Write docs", "description": "Document the audit API"}
    body.update(overrides)
    response = await client.post("/tasks", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_requests_without_token_are_rejected(async_client: AsyncClient, tenants) -> None:
    response = await async_client.get("/tasks")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"

    response = await async_client.get("/tasks", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_create_task_records_audit_entry(async_client: AsyncClient, tenants) -> None:
    task = await _create_task(async_client, tenants.owner.headers(), category="Personal")

    assert task["organizationId"] == tenants.org_a
    assert task["createdBy"] == tenants.owner.id
    assert task["status"] == "todo"
    assert task["category"] == "Personal"

    entries = await _audit_entries(tenants.org_a)
    assert len(entries) == 1
    assert entries[0].action == AuditAction.CREATE.value
    assert entries[0].resource == AuditResource.TASK.value
    assert entries[0].resource_id == task["id"]
    assert entries[0].user_id == tenants.owner.id
    assert entries[0].changes["title"] == "Write docs"


async def test_viewer_with_create_claim_cannot_update(async_client: AsyncClient, tenants) -> None:
    headers = tenants.viewer.headers(permissions=["READ_TASK", "CREATE_TASK"])
    task = await _create_task(async_client, headers)

    response = await async_client.put(f"/tasks/{task['id']}", json={"title": "Hijacked"}, headers=headers)

    assert response.status_code == 403
    assert response.json()["reason"] == "missing permission"

    stored = await _load_task(task["id"])
    assert stored.title == "Write docs"
    actions = [e.action for e in await _audit_entries(tenants.org_a)]
    assert actions == ["CREATE"]


async def test_permission_is_checked_before_existence(async_client: AsyncClient, tenants) -> None:
    response = await async_client.delete("/tasks/does-not-exist", headers=tenants.viewer.headers())
    assert response.status_code == 403

    response = await async_client.delete("/tasks/does-not-exist", headers=tenants.owner.headers())
    assert response.status_code == 404
    assert "not found" in response.json()["detail"]


async def test_get_task_records_read(async_client: AsyncClient, tenants) -> None:
    task = await _create_task(async_client, tenants.owner.headers())

    response = await async_client.get(f"/tasks/{task['id']}", headers=tenants.viewer.headers())

    assert response.status_code == 200
    assert response.json()["title"] == "Write docs"
    reads = await _audit_entries(tenants.org_a, action=AuditAction.READ)
    assert [(e.user_id, e.resource_id) for e in reads] == [(tenants.viewer.id, task["id"])]


async def test_list_is_unaudited_and_filtered(async_client: AsyncClient, tenants) -> None:
    headers = tenants.admin.headers()
    await _create_task(async_client, headers, title="One")
    second = await _create_task(async_client, headers, title="Two", status="done")

    response = await async_client.get("/tasks", headers=headers)
    assert response.status_code == 200
    assert {t["title"] for t in response.json()} == {"One", "Two"}

    response = await async_client.get("/tasks", params={"status": "done"}, headers=headers)
    assert [t["id"] for t in response.json()] == [second["id"]]

    actions = {e.action for e in await _audit_entries(tenants.org_a)}
    assert actions == {"CREATE"}


async def test_tasks_are_isolated_between_organizations(async_client: AsyncClient, tenants) -> None:
    task = await _create_task(async_client, tenants.owner.headers())
    outsider = tenants.other_owner.headers()

    response = await async_client.get("/tasks", headers=outsider)
    assert response.json() == []

    response = await async_client.get(f"/tasks/{task['id']}", headers=outsider)
    assert response.status_code == 403
    assert response.json()["reason"] == "resource not in organization"

    response = await async_client.delete(f"/tasks/{task['id']}", headers=outsider)
    assert response.status_code == 403
    assert await _load_task(task["id"]) is not None


async def test_claimed_organization_must_match(async_client: AsyncClient, tenants) -> None:
    headers = tenants.owner.headers()
    headers["X-Organization-Id"] = tenants.org_b

    response = await async_client.get("/tasks", headers=headers)

    assert response.status_code == 403
    assert response.json()["reason"] == "not member of organization"


async def test_update_records_only_changed_fields(async_client: AsyncClient, tenants) -> None:
    headers = tenants.owner.headers()
    task = await _create_task(async_client, headers)

    response = await async_client.put(
        f"/tasks/{task['id']}",
        json={"title": "Write better docs", "description": "Document the audit API"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["title"] == "Write better docs"
    updates = await _audit_entries(tenants.org_a, action=AuditAction.UPDATE)
    assert len(updates) == 1
    assert updates[0].changes == {"title": {"old": "Write docs", "new": "Write better docs"}}


async def test_update_requires_a_field(async_client: AsyncClient, tenants) -> None:
    headers = tenants.owner.headers()
    task = await _create_task(async_client, headers)

    response = await async_client.put(f"/tasks/{task['id']}", json={}, headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "At least one field must be provided for update"


async def test_update_ownership_rules(async_client: AsyncClient, tenants) -> None:
    task = await _create_task(async_client, tenants.owner.headers())
    url = f"/tasks/{task['id']}"

    # A non-creator holding UPDATE_TASK without ADMIN/OWNER is refused
    headers = tenants.viewer.headers(permissions=["READ_TASK", "UPDATE_TASK"])
    response = await async_client.put(url, json={"status": "done"}, headers=headers)
    assert response.status_code == 403
    assert response.json()["reason"] == "insufficient ownership/role for operation"

    response = await async_client.put(url, json={"status": "in-progress"}, headers=tenants.admin.headers())
    assert response.status_code == 200
    assert response.json()["status"] == "in-progress"


async def test_delete_ownership_rules(async_client: AsyncClient, tenants) -> None:
    task = await _create_task(async_client, tenants.owner.headers())
    url = f"/tasks/{task['id']}"

    response = await async_client.delete(url, headers=tenants.admin.headers())
    assert response.status_code == 403
    assert response.json()["reason"] == "insufficient ownership/role for operation"

    # The creator can delete their own task without OWNER
    own = await _create_task(async_client, tenants.admin.headers())
    response = await async_client.delete(f"/tasks/{own['id']}", headers=tenants.admin.headers())
    assert response.status_code == 200
    assert response.json() == {"success": True}

    response = await async_client.delete(url, headers=tenants.owner.headers())
    assert response.status_code == 200
    assert await _load_task(task["id"]) is None

    deletes = await _audit_entries(tenants.org_a, action=AuditAction.DELETE)
    assert {e.resource_id for e in deletes} == {task["id"], own["id"]}
    deleted = next(e for e in deletes if e.resource_id == task["id"])
    assert deleted.changes["deletedTask"]["title"] == "Write docs"


async def test_stale_token_falls_back_to_live_roles(async_client: AsyncClient, tenants) -> None:
    # No permissions in the token: the admin's role assignment is used
    headers = tenants.admin.headers(roles=[], permissions=[])

    task = await _create_task(async_client, headers)

    assert task["createdBy"] == tenants.admin.id


async def test_paginated_audit_log(async_client: AsyncClient, tenants) -> None:
    headers = tenants.owner.headers()
    for i in range(3):
        await _create_task(async_client, headers, title=f"Task {i}")

    response = await async_client.get("/tasks/audit-log", params={"limit": 2}, headers=headers)

    assert response.status_code == 200
    assert response.headers["X-Total-Count"] == "3"
    body = response.json()
    assert len(body) == 2
    assert {"id", "action", "userId", "organizationId", "resource", "resourceId", "timestamp"} <= set(body[0])

    response = await async_client.get("/tasks/audit-log", headers=tenants.viewer.headers())
    assert response.status_code == 403
    assert response.json()["reason"] == "missing role"


@pytest.mark.parametrize(
    "params, detail",
    [
        ({"limit": 150}, "Limit cannot exceed 100"),
        ({"limit": 0}, "Limit must be a positive number"),
        ({"offset": -1}, "Offset must be a non-negative number"),
    ],
)
async def test_paginated_audit_log_validation(async_client: AsyncClient, tenants, params, detail) -> None:
    response = await async_client.get("/tasks/audit-log", params=params, headers=tenants.owner.headers())

    assert response.status_code == 400
    assert response.json()["detail"] == detail
