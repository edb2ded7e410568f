import pytest

from servicedesk.core.config import settings
from servicedesk.core.errors import RemoteFailure
from servicedesk.services import session as session_module
from servicedesk.services.roles import Failed

from tests.factories import PASSWORD, auth_headers

MODE_KEY = settings.interface_mode_key


def _mode_cookie(mode: str) -> dict[str, str]:
    return {"Cookie": f"{MODE_KEY}={mode}"}


async def test_health_carries_request_id(client):
    r = await client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    assert r.headers["X-Request-ID"] == "abc-123"


async def test_login_and_me(client, users):
    r = await client.post("/api/auth/login", json={"username": "alice@example.com", "password": PASSWORD})
    assert r.status_code == 200
    token = r.json()["access_token"]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "alice@example.com"


async def test_login_failures(client, users):
    r = await client.post("/api/auth/login", json={"username": "alice@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["code"] == "unauthenticated"

    r = await client.post("/api/auth/login", json={"username": "ghost@example.com", "password": PASSWORD})
    assert r.status_code == 403
    assert r.json()["code"] == "permission_denied"


async def test_register_creates_front_office_user(client, users):
    r = await client.post("/api/auth/register", json={"email": "new@example.com", "password": "hunter22"})
    assert r.status_code == 201
    token = r.json()["access_token"]

    state = await client.get("/api/session", headers={"Authorization": f"Bearer {token}"})
    body = state.json()
    assert body["facts"]["primary_role"] == "user"
    assert body["facts"]["is_front_office"] is True
    assert body["mode"] == "user"
    assert body["home"] == "/portal"

    dup = await client.post("/api/auth/register", json={"email": "new@example.com", "password": "hunter22"})
    assert dup.status_code == 409


async def test_register_disabled(client, monkeypatch):
    monkeypatch.setattr(settings, "allow_self_signup", False)
    r = await client.post("/api/auth/register", json={"email": "late@example.com", "password": "hunter22"})
    assert r.status_code == 403


async def test_logout(client, users):
    r = await client.post("/api/auth/logout", headers=auth_headers(users["alice"]))
    assert r.status_code == 204


async def test_requires_authentication(client):
    r = await client.get("/api/tickets")
    assert r.status_code == 401
    assert r.json() == {"detail": "Invalid or expired token", "code": "unauthenticated"}


async def test_vpn_down_scenario(client, users):
    r = await client.post("/api/tickets", json={"title": "VPN down"}, headers=auth_headers(users["alice"]))
    assert r.status_code == 201
    body = r.json()
    assert body["priority"] == "medium"
    assert body["type"] == "incident"
    assert body["status"] == "new"
    assert body["requester_id"] == users["alice"].id
    assert body["sla_breached"] is False


async def test_ticket_error_mapping(client, users):
    alice = auth_headers(users["alice"])
    manager = auth_headers(users["manager"])

    r = await client.post("/api/tickets", json={"title": "   "}, headers=alice)
    assert r.status_code == 422
    assert r.json()["code"] == "validation_failed"

    created = (await client.post("/api/tickets", json={"title": "Mouse"}, headers=alice)).json()

    r = await client.patch(f"/api/tickets/{created['id']}", json={"status": "closed"}, headers=alice)
    assert r.status_code == 403
    assert r.json()["code"] == "permission_denied"

    r = await client.patch("/api/tickets/999", json={"status": "closed"}, headers=manager)
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"

    r = await client.patch(f"/api/tickets/{created['id']}", json={"assignee_id": 999}, headers=manager)
    assert r.status_code == 422


async def test_patch_status_and_reopen(client, users):
    alice = auth_headers(users["alice"])
    manager = auth_headers(users["manager"])
    t = (await client.post("/api/tickets", json={"title": "Wi-Fi"}, headers=alice)).json()

    resolved = (await client.patch(f"/api/tickets/{t['id']}", json={"status": "resolved"}, headers=manager)).json()
    assert resolved["resolved_at"] is not None

    reopened = (await client.patch(f"/api/tickets/{t['id']}", json={"status": "in_progress"}, headers=manager)).json()
    assert reopened["status"] == "in_progress"
    assert reopened["resolved_at"] == resolved["resolved_at"]

    fetched = (await client.get(f"/api/tickets/{t['id']}", headers=alice)).json()
    assert fetched["status"] == "in_progress"


async def test_comments_over_http(client, users):
    alice = auth_headers(users["alice"])
    manager = auth_headers(users["manager"])
    t = (await client.post("/api/tickets", json={"title": "Screen"}, headers=alice)).json()
    url = f"/api/tickets/{t['id']}/comments"

    r = await client.post(url, json={"content": "secret", "is_internal": True}, headers=alice)
    assert r.status_code == 422

    r = await client.post(url, json={"content": "warranty expired", "is_internal": True}, headers=manager)
    assert r.status_code == 201
    r = await client.post(url, json={"content": "we will call you"}, headers=manager)
    assert r.status_code == 201

    seen_by_alice = (await client.get(url, headers=alice)).json()
    assert [c["content"] for c in seen_by_alice] == ["we will call you"]
    assert len((await client.get(url, headers=manager)).json()) == 2

    # у режимі порталу staff бачить лише власні заявки і без внутрішніх
    as_portal = {**manager, **_mode_cookie("user")}
    assert (await client.get(url, headers=as_portal)).status_code == 403
    assert (await client.get(f"/api/tickets/{t['id']}", headers=as_portal)).status_code == 403

    own = (await client.post("/api/tickets", json={"title": "My dock"}, headers=manager)).json()
    own_url = f"/api/tickets/{own['id']}/comments"
    await client.post(own_url, json={"content": "spare in stock", "is_internal": True}, headers=manager)
    await client.post(own_url, json={"content": "picked up"}, headers=manager)
    portal = (await client.get(own_url, headers=as_portal)).json()
    assert [c["content"] for c in portal] == ["picked up"]


async def test_stats_endpoint(client, users):
    alice = auth_headers(users["alice"])
    await client.post("/api/tickets", json={"title": "one"}, headers=alice)
    r = await client.get("/api/tickets/stats", headers=auth_headers(users["admin"]))
    assert r.status_code == 200
    assert r.json()["open_tickets"] == 1
    assert (await client.get("/api/tickets/stats", headers=alice)).status_code == 403


async def test_role_grants_over_http(client, users):
    admin = auth_headers(users["admin"])
    url = f"/api/users/{users['bob'].id}/roles"

    r = await client.post(url, json={"role": "agent"}, headers=admin)
    assert r.status_code == 201
    assert r.json()["roles"] == ["agent"]

    r = await client.post(url, json={"role": "agent"}, headers=admin)
    assert r.status_code == 409
    assert r.json()["code"] == "conflict"

    r = await client.delete(f"{url}/agent", headers=admin)
    assert r.status_code == 200
    assert r.json()["roles"] == []

    assert (await client.get("/api/users", headers=auth_headers(users["manager"]))).status_code == 403
    assert (await client.post(url, json={"role": "admin"}, headers=auth_headers(users["manager"]))).status_code == 403


async def test_profile_update_over_http(client, users):
    r = await client.patch("/api/users/me", json={"job_title": "Accountant"}, headers=auth_headers(users["alice"]))
    assert r.status_code == 200
    assert r.json()["job_title"] == "Accountant"


async def test_asset_assignment_over_http(client, users, laptop):
    manager = auth_headers(users["manager"])
    r = await client.put(f"/api/assets/{laptop.id}/assignee", json={"user_id": users["alice"].id}, headers=manager)
    assert r.status_code == 200
    assert r.json()["assignee_id"] == users["alice"].id

    r = await client.put("/api/assets/999/assignee", json={"user_id": users["alice"].id}, headers=manager)
    assert r.status_code == 404

    r = await client.get("/api/assets", headers=auth_headers(users["agent"]))
    assert r.status_code == 403


async def test_staff_mode_cookie(client, users):
    manager = auth_headers(users["manager"])

    start = (await client.get("/api/session", headers=manager)).json()
    assert start["mode"] == "si"
    assert start["surface"] == "back_office"
    assert start["can_switch_mode"] is True

    r = await client.put("/api/session/mode", json={"mode": "user"}, headers=manager)
    assert r.status_code == 200
    assert r.json()["mode"] == "user"
    assert r.cookies.get(MODE_KEY) == "user"

    client.cookies.clear()
    again = (await client.get("/api/session", headers={**manager, **_mode_cookie("user")})).json()
    assert again["surface"] == "portal"

    toggled = await client.post("/api/session/mode/toggle", headers={**manager, **_mode_cookie("user")})
    assert toggled.json()["mode"] == "si"
    assert toggled.cookies.get(MODE_KEY) == "si"


async def test_non_staff_mode_is_pinned(client, users):
    alice = {**auth_headers(users["alice"]), **_mode_cookie("si")}
    state = (await client.get("/api/session", headers=alice)).json()
    assert state["mode"] == "user"

    r = await client.post("/api/session/mode/toggle", headers=alice)
    assert r.json()["mode"] == "user"
    assert MODE_KEY not in r.cookies


async def test_portal_mode_scopes_ticket_list(client, users):
    await client.post("/api/tickets", json={"title": "alice"}, headers=auth_headers(users["alice"]))
    manager = auth_headers(users["manager"])
    assert len((await client.get("/api/tickets", headers=manager)).json()) == 1
    assert (await client.get("/api/tickets", headers={**manager, **_mode_cookie("user")})).json() == []


@pytest.mark.parametrize("who, mode, path, expected", [
    (None, None, "/tickets", {"action": "redirect", "location": "/auth", "from_location": "/tickets"}),
    ("alice", None, "/", {"action": "redirect", "location": "/portal"}),
    ("alice", None, "/portal/tickets", {"action": "allow"}),
    ("manager", "user", "/tickets", {"action": "redirect", "location": "/portal/tickets"}),
    ("manager", None, "/tickets", {"action": "allow"}),
    ("manager", None, "/users", {"action": "redirect", "location": "/"}),
    ("admin", None, "/portal", {"action": "redirect", "location": "/"}),
])
async def test_navigate(client, users, who, mode, path, expected):
    headers = auth_headers(users[who]) if who else {}
    if mode:
        headers.update(_mode_cookie(mode))
    r = await client.get("/api/session/navigate", params={"path": path}, headers=headers)
    assert r.status_code == 200
    body = r.json()
    for key, value in expected.items():
        assert body[key] == value


async def test_role_store_failure(client, users, monkeypatch):
    async def broken(db, user_id):
        return Failed(RemoteFailure("Unable to load roles"))

    monkeypatch.setattr(session_module, "load_role_state", broken)
    headers = auth_headers(users["manager"])

    r = await client.get("/api/tickets", headers=headers)
    assert r.status_code == 503
    assert r.json()["code"] == "remote_failure"

    r = await client.get("/api/session/navigate", params={"path": "/tickets"}, headers=headers)
    assert r.json() == {
        "action": "suspend",
        "path": "/tickets",
        "location": None,
        "from_location": None,
        "reason": "roles_unavailable",
    }


async def test_token_round_trip_and_tampering(users):
    from jose import jwt

    from servicedesk.core.security import decode_token
    from servicedesk.services.auth import make_token_for_user

    token = make_token_for_user(users["alice"])
    assert decode_token(token)["sub"] == str(users["alice"].id)
    forged = jwt.encode({"sub": "1", "type": "access"}, "other-secret", algorithm="HS256")
    for bad in (forged, "not.a.token"):
        with pytest.raises(ValueError):
            decode_token(bad)
