import pytest
from sqlalchemy import select

from app.features.permissions.catalog import Module
from app.features.permissions.models import AuditLog


def _role_payload(name, **pairs):
    return {
        "name": name,
        "permissions": {module: {"capability": c, "scope": s} for module, (c, s) in pairs.items()},
    }


@pytest.mark.asyncio
async def test_create_role_fills_missing_modules(async_client, admin, auth_headers):
    response = await async_client.post(
        "/roles", json=_role_payload("Property Viewer", property=("view", "partial")), headers=auth_headers(admin)
    )
    assert response.status_code == 201, response.text
    permissions = response.json()["permissions"]
    assert set(permissions) == {module.value for module in Module}
    assert permissions["property"] == {"capability": "view", "scope": "partial"}
    assert permissions["audit"] == {"capability": "view", "scope": "none"}


@pytest.mark.asyncio
async def test_create_role_is_audited(async_client, db_session, admin, auth_headers):
    response = await async_client.post("/roles", json=_role_payload("Auditor"), headers=auth_headers(admin))
    entries = (await db_session.execute(select(AuditLog).where(AuditLog.resource_id == response.json()["id"]))).scalars().all()
    assert [(e.action, e.resource_type, e.user_id) for e in entries] == [("create", "role", admin.id)]


@pytest.mark.asyncio
async def test_duplicate_role_name_conflicts(async_client, admin, auth_headers):
    await async_client.post("/roles", json=_role_payload("Manager"), headers=auth_headers(admin))
    response = await async_client.post("/roles", json=_role_payload("Manager"), headers=auth_headers(admin))
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_role_cannot_exceed_creator(async_client, make_user, auth_headers):
    manager = await make_user({Module.USER_ROLE: ("all", "all"), Module.PORTFOLIO: ("update", "partial")})
    escalated = await async_client.post(
        "/roles", json=_role_payload("Too Much", portfolio=("all", "all")), headers=auth_headers(manager)
    )
    modest = await async_client.post(
        "/roles", json=_role_payload("Modest", portfolio=("view", "partial")), headers=auth_headers(manager)
    )
    assert escalated.status_code == 403
    assert modest.status_code == 201


@pytest.mark.asyncio
async def test_update_role_changes_only_given_modules(async_client, admin, auth_headers):
    created = await async_client.post(
        "/roles", json=_role_payload("Ops", audit=("update", "all")), headers=auth_headers(admin)
    )
    role_id = created.json()["id"]
    response = await async_client.patch(
        f"/roles/{role_id}",
        json={"permissions": {"portfolio": {"capability": "all", "scope": "partial"}}},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    permissions = response.json()["permissions"]
    assert permissions["portfolio"] == {"capability": "all", "scope": "partial"}
    assert permissions["audit"] == {"capability": "update", "scope": "all"}


@pytest.mark.asyncio
async def test_role_update_rejects_null_name_and_flag(async_client, admin, auth_headers):
    created = await async_client.post("/roles", json=_role_payload("Night Audit"), headers=auth_headers(admin))
    role_id = created.json()["id"]
    for payload in ({"name": None}, {"is_external": None}):
        response = await async_client.patch(f"/roles/{role_id}", json=payload, headers=auth_headers(admin))
        assert response.status_code == 400, payload

    cleared = await async_client.patch(f"/roles/{role_id}", json={"description": None}, headers=auth_headers(admin))
    assert cleared.status_code == 200
    assert cleared.json()["name"] == "Night Audit"


@pytest.mark.asyncio
async def test_role_list_is_empty_under_unsupported_partial_scope(async_client, make_user, auth_headers):
    user = await make_user({Module.USER_ROLE: ("view", "partial")})
    response = await async_client.get("/roles", headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_role_list_with_full_scope(async_client, admin, make_role, auth_headers):
    await make_role(name="extra")
    response = await async_client.get("/roles", headers=auth_headers(admin))
    assert response.status_code == 200
    assert "extra" in [role["name"] for role in response.json()]


@pytest.mark.asyncio
async def test_delete_referenced_role_is_refused(async_client, admin, make_user, auth_headers):
    user = await make_user({Module.PORTFOLIO: ("view", "all")})
    response = await async_client.delete(f"/roles/{user.role_id}", headers=auth_headers(admin))
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_delete_unused_role(async_client, admin, make_role, auth_headers):
    role = await make_role()
    response = await async_client.delete(f"/roles/{role.id}", headers=auth_headers(admin))
    assert response.status_code == 204
    missing = await async_client.get(f"/roles/{role.id}", headers=auth_headers(admin))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_grants_are_created_then_replaced(async_client, admin, make_user, auth_headers):
    user = await make_user({Module.PROPERTY: ("view", "partial")})
    empty = await async_client.get(f"/users/{user.id}/grants", headers=auth_headers(admin))
    assert empty.json() == {"user_id": user.id, "resource_ids": {}}

    first = await async_client.put(
        f"/users/{user.id}/grants",
        json={"resource_ids": {"property": ["h2", "h1", "h2"], "portfolio": ["p1"]}},
        headers=auth_headers(admin),
    )
    assert first.json()["resource_ids"] == {"property": ["h1", "h2"], "portfolio": ["p1"]}

    second = await async_client.put(
        f"/users/{user.id}/grants", json={"resource_ids": {"property": ["h3"]}}, headers=auth_headers(admin)
    )
    assert second.json()["resource_ids"] == {"property": ["h3"]}

    current = await async_client.get(f"/users/{user.id}/grants", headers=auth_headers(admin))
    assert current.json()["resource_ids"] == {"property": ["h3"]}


@pytest.mark.asyncio
async def test_grants_reject_modules_without_partial_scope(async_client, admin, make_user, auth_headers):
    user = await make_user()
    response = await async_client.put(
        f"/users/{user.id}/grants", json={"resource_ids": {"audit": ["a1"]}}, headers=auth_headers(admin)
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_users_cannot_change_their_own_grants(async_client, make_user, auth_headers):
    manager = await make_user(
        {Module.PORTFOLIO: ("view", "partial"), Module.USER: ("update", "all")},
        grants={Module.PORTFOLIO: ["mine"]},
    )
    response = await async_client.put(
        f"/users/{manager.id}/grants",
        json={"resource_ids": {"portfolio": ["mine", "other"]}},
        headers=auth_headers(manager),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot change your own grants"

    current = await async_client.get(f"/users/{manager.id}/grants", headers=auth_headers(manager))
    assert current.json()["resource_ids"] == {"portfolio": ["mine"]}


@pytest.mark.asyncio
async def test_grants_are_bounded_by_the_grantors_visibility(async_client, make_user, auth_headers):
    manager = await make_user(
        {Module.PORTFOLIO: ("view", "partial"), Module.USER: ("update", "all")},
        grants={Module.PORTFOLIO: ["mine"]},
    )
    colleague = await make_user({Module.PORTFOLIO: ("view", "partial")})

    outside = await async_client.put(
        f"/users/{colleague.id}/grants",
        json={"resource_ids": {"portfolio": ["mine", "other"]}},
        headers=auth_headers(manager),
    )
    assert outside.status_code == 403

    inside = await async_client.put(
        f"/users/{colleague.id}/grants", json={"resource_ids": {"portfolio": ["mine"]}}, headers=auth_headers(manager)
    )
    assert inside.status_code == 200, inside.text
    assert inside.json()["resource_ids"] == {"portfolio": ["mine"]}


@pytest.mark.asyncio
async def test_audit_logs_require_system_settings(async_client, make_user, auth_headers):
    user = await make_user({Module.SYSTEM_SETTINGS: ("view", "none")})
    response = await async_client.get("/permissions/audit-logs", headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json() == []
