# tests/test_api.py

"""
Tests for the HTTP boundary: routing, error mapping, and the impersonation cookie.
"""

import logging

from fastapi.testclient import TestClient

from core.config import settings
from core.logging_config import LOGGER_NAME
from models.enums import MembershipStatus
from models.user import Principal


COOKIE = settings.IMPERSONATION_COOKIE_NAME
DAVE = Principal(id="dave", email="dave@example.com", name="Dave", access_token="dave-token")


def _start_impersonating(client: TestClient, auth_state, staff_principal, target: str) -> str:
    auth_state.principal = staff_principal
    response = client.post("/impersonation/start", json={"target_user_id": target})
    assert response.status_code == 200
    token = response.cookies[COOKIE]
    client.cookies.clear()
    client.cookies.set(COOKIE, token)
    return token


# ============================================================
# Auth
# ============================================================
def test_staff_status(client: TestClient, auth_state, staff_principal, bob):
    assert client.get("/auth/staff-status").json() == {"is_staff_admin": False}

    auth_state.principal = bob
    assert client.get("/auth/staff-status").json() == {"is_staff_admin": False}

    auth_state.principal = staff_principal
    assert client.get("/auth/staff-status").json() == {"is_staff_admin": True}


def test_unauthenticated_redirects_to_signin(client: TestClient):
    response = client.get("/auth/context", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == settings.SIGNIN_PATH


def test_auth_context_for_regular_user(client: TestClient, auth_state, bob):
    auth_state.principal = bob

    data = client.get("/auth/context").json()

    assert data["effective_user_id"] == "bob"
    assert data["data_access"] == "restricted"
    assert data["is_impersonating"] is False
    assert "access_token" not in data


# ============================================================
# Impersonation
# ============================================================
def test_impersonation_round_trip(client: TestClient, auth_state, staff_principal):
    auth_state.principal = staff_principal
    response = client.post(
        "/impersonation/start", json={"target_user_id": "bob", "redirect_to": "/n/maple"}
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "redirect_to": "/n/maple", "error": None}
    set_cookie = response.headers["set-cookie"]
    assert f"{COOKIE}=" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "Max-Age=14400" in set_cookie
    assert "SameSite=lax" in set_cookie

    token = response.cookies[COOKIE]
    client.cookies.clear()
    client.cookies.set(COOKIE, token)

    ctx = client.get("/auth/context").json()
    assert ctx["principal_id"] == "staff-1"
    assert ctx["effective_user_id"] == "bob"
    assert ctx["is_impersonating"] is True

    state = client.get("/impersonation").json()
    assert state["impersonated_user"]["email"] == "bob@example.com"

    ended = client.post("/impersonation/end")
    assert ended.json()["redirect_to"] == settings.STAFF_PANEL_PATH
    assert f"{COOKIE}=" in ended.headers["set-cookie"]

    # A replayed cookie no longer counts once the session is gone
    client.cookies.clear()
    client.cookies.set(COOKIE, token)
    assert client.get("/auth/context").json()["is_impersonating"] is False


def test_non_staff_cannot_impersonate(client: TestClient, auth_state, alice):
    auth_state.principal = alice

    response = client.post("/impersonation/start", json={"target_user_id": "bob"})

    assert response.status_code == 403
    assert response.json()["success"] is False
    assert response.json()["code"] == "FORBIDDEN"
    assert "set-cookie" not in response.headers


def test_staff_target_is_rejected(client: TestClient, auth_state, staff_principal):
    auth_state.principal = staff_principal

    response = client.post("/impersonation/start", json={"target_user_id": "staff-2"})

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN_TARGET"
    assert response.json()["error"] == "Cannot impersonate another staff admin"


def test_unknown_target_is_not_found(client: TestClient, auth_state, staff_principal):
    auth_state.principal = staff_principal
    response = client.post("/impersonation/start", json={"target_user_id": "nobody"})
    assert response.status_code == 404


def test_impersonation_state_is_staff_only(client: TestClient, auth_state, bob):
    auth_state.principal = bob
    assert client.get("/impersonation").status_code == 403


# ============================================================
# Memberships
# ============================================================
def test_join_then_approve(client: TestClient, auth_state, alice, store):
    auth_state.principal = DAVE
    joined = client.post("/neighborhoods/maple/join")
    assert joined.status_code == 200
    membership_id = joined.json()["membership"]["id"]
    assert joined.json()["membership"]["status"] == "pending"

    auth_state.principal = alice
    approved = client.post(f"/memberships/{membership_id}/approve")

    assert approved.status_code == 200
    assert approved.json()["membership"]["status"] == "active"
    assert store.memberships[membership_id].status == MembershipStatus.active


def test_member_cannot_approve(client: TestClient, auth_state, bob):
    auth_state.principal = bob
    response = client.post("/memberships/m-carol-maple/approve")
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_self_action_is_rejected(client: TestClient, auth_state, carol):
    auth_state.principal = carol
    response = client.post("/memberships/m-carol-maple/approve")
    assert response.status_code == 403
    assert response.json()["code"] == "SELF_ACTION_FORBIDDEN"


def test_invalid_state_is_a_conflict(client: TestClient, auth_state, alice):
    auth_state.principal = alice
    response = client.post("/memberships/m-bob-maple/approve")
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


def test_decline(client: TestClient, auth_state, alice):
    auth_state.principal = alice
    response = client.post("/memberships/m-carol-maple/decline")
    assert response.json()["membership"]["status"] == "inactive"
    assert response.json()["membership"]["deleted_at"] is not None


def test_role_change(client: TestClient, auth_state, alice, staff_principal):
    auth_state.principal = alice
    promoted = client.patch("/memberships/m-bob-maple/role", json={"role": "admin"})
    assert promoted.json()["membership"]["role"] == "admin"

    demoted = client.patch("/memberships/m-bob-maple/role", json={"role": "member"})
    assert demoted.status_code == 403

    auth_state.principal = staff_principal
    demoted = client.patch("/memberships/m-bob-maple/role", json={"role": "member"})
    assert demoted.json()["membership"]["role"] == "member"


def test_role_change_rejects_unknown_role(client: TestClient, auth_state, alice):
    auth_state.principal = alice
    response = client.patch("/memberships/m-bob-maple/role", json={"role": "owner"})
    assert response.status_code == 422


def test_move_out_messages(client: TestClient, auth_state, alice, bob, store):
    store.add_membership("dave", "maple")

    auth_state.principal = bob
    own = client.post("/memberships/m-bob-maple/move-out")
    assert own.json()["message"] == "You have been marked as moved out"

    auth_state.principal = alice
    other = client.post("/memberships/m-dave-maple/move-out")
    assert other.json()["message"] == "Member has been marked as moved out"


def test_unknown_membership_is_not_found(client: TestClient, auth_state, alice):
    auth_state.principal = alice
    response = client.post("/memberships/m-missing/approve")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Membership not found", "code": "NOT_FOUND"}


def test_store_failure_is_a_server_error(client: TestClient, auth_state, alice, store):
    auth_state.principal = alice
    store.fail_on.add("get_membership")

    response = client.post("/memberships/m-carol-maple/approve")

    assert response.status_code == 500
    assert response.json()["code"] == "SERVER_ERROR"


def test_impersonated_approval_is_audited(client: TestClient, auth_state, staff_principal, store):
    _start_impersonating(client, auth_state, staff_principal, "alice")

    response = client.post("/memberships/m-carol-maple/approve")

    assert response.status_code == 200
    assert store.memberships["m-carol-maple"].staff_actor_id == "staff-1"


# ============================================================
# Staff admin membership management
# ============================================================
def test_staff_adds_and_removes_member(client: TestClient, auth_state, staff_principal, store):
    auth_state.principal = staff_principal

    added = client.post("/admin/users/dave/memberships", json={"neighborhood_id": "elm"})
    assert added.status_code == 200
    membership_id = added.json()["membership"]["id"]
    assert added.json()["membership"]["status"] == "active"

    removed = client.delete(f"/admin/users/dave/memberships/{membership_id}")
    assert removed.json() == {"success": True}
    assert store.find_membership("dave", "elm") is None


def test_admin_routes_are_staff_only(client: TestClient, auth_state, alice):
    auth_state.principal = alice
    response = client.post("/admin/users/dave/memberships", json={"neighborhood_id": "maple"})
    assert response.status_code == 403


def test_staff_creates_neighborhood(client: TestClient, auth_state, staff_principal, store):
    auth_state.principal = staff_principal

    response = client.post("/admin/neighborhoods", json={"name": "Birch Court", "require_approval": False})

    assert response.status_code == 200
    neighborhood = response.json()["neighborhood"]
    assert neighborhood["slug"] == "birch-court"
    assert neighborhood["created_by"] == "staff-1"
    assert neighborhood["settings"]["require_approval"] is False
    assert store.count_active_members(neighborhood["id"]) == 0


def test_create_neighborhood_is_staff_only(client: TestClient, auth_state, alice):
    auth_state.principal = alice
    response = client.post("/admin/neighborhoods", json={"name": "Birch Court"})
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_create_neighborhood_duplicate_slug(client: TestClient, auth_state, staff_principal):
    auth_state.principal = staff_principal
    response = client.post("/admin/neighborhoods", json={"name": "Oak"})
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


# ============================================================
# Profile / posts
# ============================================================
def test_profile_edit_while_impersonating(client: TestClient, auth_state, staff_principal, store):
    _start_impersonating(client, auth_state, staff_principal, "bob")

    response = client.patch("/profile", json={"bio": "Porch plants"})

    assert response.status_code == 200
    assert store.users["bob"].bio == "Porch plants"
    assert store.users["staff-1"].bio is None
    assert store.last_user_write == {"bio": "Porch plants", "staff_actor_id": "staff-1"}


def test_profile_edit_only_writes_sent_fields(client: TestClient, auth_state, bob, store):
    auth_state.principal = bob

    client.patch("/profile", json={"phone": "555-0100"})

    assert store.last_user_write == {"phone": "555-0100"}
    assert store.users["bob"].name == "Bob"


def test_post_as_member(client: TestClient, auth_state, bob, store):
    auth_state.principal = bob

    response = client.post("/neighborhoods/maple/posts", json={"content": "Lost cat"})

    assert response.status_code == 200
    assert response.json()["author_id"] == "bob"
    assert response.json()["staff_actor_id"] is None
    assert store.posts[0]["neighborhood_id"] == "maple"


def test_post_requires_active_membership(client: TestClient, auth_state, carol):
    auth_state.principal = carol
    response = client.post("/neighborhoods/maple/posts", json={"content": "Hello?"})
    assert response.status_code == 403


def test_post_while_impersonating_is_stamped(client: TestClient, auth_state, staff_principal, store):
    _start_impersonating(client, auth_state, staff_principal, "bob")

    response = client.post("/neighborhoods/maple/posts", json={"content": "Block party Saturday"})

    assert response.json()["author_id"] == "bob"
    assert response.json()["staff_actor_id"] == "staff-1"


def test_switch_primary_neighborhood(client: TestClient, auth_state, bob, store):
    auth_state.principal = bob

    ok = client.patch("/users/me/primary-neighborhood", json={"neighborhood_id": "maple"})
    assert ok.status_code == 200
    assert store.users["bob"].primary_neighborhood_id == "maple"

    denied = client.patch("/users/me/primary-neighborhood", json={"neighborhood_id": "elm"})
    assert denied.status_code == 403


# ============================================================
# Health
# ============================================================
def test_health_app(client: TestClient):
    data = client.get("/health/app").json()
    assert data["status"] == "ok"
    assert data["impersonation_configured"] is True


# ============================================================
# Startup
# ============================================================
def test_startup_logs_routes(app, caplog):
    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        with TestClient(app):
            pass

    assert "Starting Blockclub Access API" in caplog.text
    assert "/openapi.json" in caplog.text
