import pytest
from fastapi.routing import APIRoute
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app.core.errors import FORBIDDEN_MESSAGE
from app.features.permissions import dependencies
from app.features.permissions.catalog import Module
from app.features.portfolios.models import Portfolio
from app.features.properties.models import Property
from app.main import app


UNGUARDED_ROUTES = {
    ("GET", "/"),
    ("GET", "/health"),
    ("GET", "/users/me"),
    ("GET", "/permissions/me"),
    ("POST", "/permissions/check"),
}


def _dependency_calls(dependant):
    for dependency in dependant.dependencies:
        yield dependency.call
        yield from _dependency_calls(dependency)


async def _hotel(db_session, name="Harbour View"):
    portfolio = Portfolio(name=f"{name} Group")
    db_session.add(portfolio)
    await db_session.flush()
    hotel = Property(name=name, portfolio_id=portfolio.id)
    db_session.add(hotel)
    await db_session.commit()
    return hotel


def test_every_route_declares_a_requirement():
    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        for method in route.methods:
            if (method, route.path) in UNGUARDED_ROUTES:
                continue
            requirements = [
                call.requirement for call in _dependency_calls(route.dependant) if hasattr(call, "requirement")
            ]
            assert requirements, f"{method} {route.path} has no permission requirement"
            requirement = requirements[0]
            if "{" in route.path:
                assert requirement.resource_scoped, f"{method} {route.path} should be resource scoped"
                assert "{" + requirement.resource_param + "}" in route.path


@pytest.mark.asyncio
async def test_missing_token_is_unauthenticated(async_client):
    response = await async_client.get("/portfolios")
    assert response.status_code == 401
    assert response.json() == {"detail": "Not authenticated"}


@pytest.mark.asyncio
async def test_invalid_token_is_unauthenticated(async_client):
    response = await async_client.get("/portfolios", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_is_unauthenticated(async_client, db_session, make_user, auth_headers):
    user = await make_user({Module.PORTFOLIO: ("all", "all")})
    user.is_active = False
    await db_session.commit()
    response = await async_client.get("/portfolios", headers=auth_headers(user))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_capability_denial(async_client, make_user, auth_headers):
    user = await make_user({Module.PORTFOLIO: ("view", "all")})
    response = await async_client.post("/portfolios", json={"name": "New"}, headers=auth_headers(user))
    assert response.status_code == 403
    assert response.json() == {"detail": FORBIDDEN_MESSAGE}


@pytest.mark.asyncio
async def test_hidden_and_missing_resources_are_indistinguishable(async_client, db_session, make_user, auth_headers):
    visible = await _hotel(db_session, "Visible")
    hidden = await _hotel(db_session, "Hidden")
    user = await make_user({Module.PROPERTY: ("view", "partial")}, grants={Module.PROPERTY: [visible.id]})

    ok = await async_client.get(f"/properties/{visible.id}", headers=auth_headers(user))
    not_granted = await async_client.get(f"/properties/{hidden.id}", headers=auth_headers(user))
    nonexistent = await async_client.get("/properties/01ZZZZZZZZZZZZZZZZZZZZZZZZ", headers=auth_headers(user))

    assert ok.status_code == 200
    assert not_granted.status_code == nonexistent.status_code == 403
    assert not_granted.json() == nonexistent.json() == {"detail": FORBIDDEN_MESSAGE}


@pytest.mark.asyncio
async def test_storage_failure_is_not_a_denial(async_client, make_user, auth_headers, monkeypatch):
    user = await make_user({Module.PORTFOLIO: ("all", "all")})

    async def failing_load_role(db, role_id):
        raise OperationalError("SELECT roles", {}, Exception("database is locked"))

    monkeypatch.setattr(dependencies, "load_role", failing_load_role)
    response = await async_client.get("/portfolios", headers=auth_headers(user))
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_missing_role_is_an_integrity_error(async_client, make_user, auth_headers, monkeypatch):
    user = await make_user({Module.PORTFOLIO: ("all", "all")})

    async def no_role(db, role_id):
        return None

    monkeypatch.setattr(dependencies, "load_role", no_role)
    response = await async_client.get("/portfolios", headers=auth_headers(user))
    assert response.status_code == 500
    assert response.json() == {"detail": "Authorization configuration error"}


@pytest.mark.asyncio
async def test_unknown_capability_in_role_is_an_integrity_error(async_client, db_session, make_user, auth_headers):
    user = await make_user({Module.PORTFOLIO: ("all", "all")})
    await db_session.execute(
        text("UPDATE role_module_permissions SET capability = 'superuser' WHERE role_id = :role_id"),
        {"role_id": user.role_id},
    )
    await db_session.commit()

    response = await async_client.get("/portfolios", headers=auth_headers(user))
    assert response.status_code == 500
    assert response.json() == {"detail": "Authorization configuration error"}


@pytest.mark.asyncio
async def test_grant_change_applies_on_next_request(async_client, db_session, admin, make_user, auth_headers):
    hotel = await _hotel(db_session)
    user = await make_user({Module.PORTFOLIO: ("view", "partial")})

    before = await async_client.get("/portfolios", headers=auth_headers(user))
    assert before.status_code == 200
    assert before.json() == []

    assigned = await async_client.put(
        f"/users/{user.id}/grants",
        json={"resource_ids": {"portfolio": [hotel.portfolio_id]}},
        headers=auth_headers(admin),
    )
    assert assigned.status_code == 200

    after = await async_client.get("/portfolios", headers=auth_headers(user))
    assert [p["id"] for p in after.json()] == [hotel.portfolio_id]


@pytest.mark.asyncio
async def test_permission_check_endpoint(async_client, make_user, auth_headers):
    user = await make_user({Module.AUDIT: ("update", "all")})
    denied = await async_client.post(
        "/permissions/check", json={"module": "audit", "action": "delete"}, headers=auth_headers(user)
    )
    allowed = await async_client.post(
        "/permissions/check", json={"module": "audit", "action": "create"}, headers=auth_headers(user)
    )
    assert denied.json() == {"allowed": False, "reason": "capability"}
    assert allowed.json() == {"allowed": True, "reason": None}


@pytest.mark.asyncio
async def test_effective_permissions(async_client, make_user, auth_headers):
    user = await make_user(
        {Module.PORTFOLIO: ("all", "partial"), Module.SYSTEM_SETTINGS: ("view", "all")},
        grants={Module.PORTFOLIO: ["p2", "p1"]},
    )
    response = await async_client.get("/permissions/me", headers=auth_headers(user))
    assert response.status_code == 200
    modules = response.json()["modules"]
    assert modules["portfolio"]["accessible_ids"] == ["p1", "p2"]
    assert modules["portfolio"]["actions"] == ["create", "read", "update", "delete"]
    assert modules["system_settings"]["accessible_ids"] == "all"
    assert modules["audit"]["accessible_ids"] == []
    assert response.json()["is_super_admin"] is False
