"""
Request-level behaviour of the route table: field checks, role gates and the
order they run in. Business outcomes are covered in test_auth_flows.py.
"""

import pytest

from app.modules.auth import service
from app.modules.auth.model import User

API = "/api/auth"


@pytest.fixture
def spy(monkeypatch):
    """Replace a service function with a recorder; the route must never reach it."""
    calls = []

    def _spy(name):
        monkeypatch.setattr(service, name, lambda *a, **kw: calls.append(name))
        return calls

    return _spy


def _messages(response):
    return [e["message"] for e in response.json()["data"]["errors"]]


# ════════════════════════════════════════════════════════
# MISSING FIELDS NEVER REACH THE HANDLER
# ════════════════════════════════════════════════════════

@pytest.mark.parametrize("method, path, service_fn, expected", [
    ("post",  "/login",           "authenticate",        ["username is required", "password is required"]),
    ("post",  "/refresh-token",   "refresh_tokens",      ["token is required"]),
    ("post",  "/verify-token",    "verify_access_token", ["token is required"]),
    ("post",  "/send-otp",        "get_user_by_email",   ["email cant be empty", "invalid email"]),
    ("patch", "/verify-otp",      "verify_otp",          ["otp is required", "email is required", "email is invalid"]),
    ("patch", "/forgot-password", "get_user_by_email",   ["email is required", "email is invalid"]),
    ("patch", "/reset-password",  "reset_password",      ["minimum password length is 6"]),
])
def test_missing_fields_rejected(client, spy, method, path, service_fn, expected):
    calls = spy(service_fn)
    response = getattr(client, method)(API + path, json={})

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["message"] == expected[0]
    assert _messages(response) == expected
    assert calls == []


def test_signup_missing_everything(client, spy):
    calls = spy("register_user")
    response = client.post(f"{API}/signup", json={})

    assert response.status_code == 422
    assert _messages(response) == [
        "minimum username length is 3",
        "minimum password length is 6",
        "email is required",
        "email is invalid",
        "Role must be either Seller or Buyer",
    ]
    assert calls == []


def test_error_entries_name_the_field(client):
    response = client.post(f"{API}/login", json={"username": "bob"})
    assert response.json()["data"]["errors"] == [
        {"field": "password", "message": "password is required", "value": ""},
    ]


def test_query_string_fields_are_checked(client, spy):
    calls = spy("refresh_tokens")
    client.post(f"{API}/refresh-token?token=abc")
    assert calls == ["refresh_tokens"]


def test_malformed_json_is_400(client):
    response = client.post(
        f"{API}/login", content="{not json", headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Malformed JSON body"


# ════════════════════════════════════════════════════════
# SIGNUP
# ════════════════════════════════════════════════════════

def test_signup_short_username_rejected(client, spy):
    calls = spy("register_user")
    response = client.post(f"{API}/signup", json={
        "username": "ab", "password": "secret1", "email": "A@B.COM", "role": "Buyer",
    })
    assert response.status_code == 422
    assert _messages(response) == ["minimum username length is 3"]
    assert calls == []


def test_signup_long_username_rejected(client):
    response = client.post(f"{API}/signup", json={
        "username": "u" * 101, "password": "secret1", "email": "a@b.com", "role": "Buyer",
    })
    assert _messages(response) == ["maximum username length is 100"]


@pytest.mark.parametrize("role", ["Admin", "buyer", "", None])
def test_signup_role_outside_seller_buyer_rejected(client, spy, role):
    calls = spy("register_user")
    response = client.post(f"{API}/signup", json={
        "username": "abc", "password": "secret1", "email": "a@b.com", "role": role,
    })
    assert response.status_code == 422
    assert _messages(response) == ["Role must be either Seller or Buyer"]
    assert calls == []


def test_signup_invalid_email_rejected(client):
    response = client.post(f"{API}/signup", json={
        "username": "abc", "password": "secret1", "email": "not-an-email", "role": "Seller",
    })
    assert _messages(response) == ["email is invalid"]


def test_signup_normalizes_email_before_handler(client, db, outbox):
    response = client.post(f"{API}/signup", json={
        "username": "abc", "password": "secret1", "email": "A@B.COM", "role": "Buyer",
    })
    assert response.status_code == 201
    assert response.json()["data"]["email"] == "a@b.com"
    assert db.query(User).filter(User.username == "abc").one().email == "a@b.com"
    assert outbox[0][0] == "a@b.com"


@pytest.mark.parametrize("path, method", [
    ("/send-otp", "post"), ("/forgot-password", "patch"),
])
def test_email_routes_reject_invalid_email(client, path, method):
    response = getattr(client, method)(API + path, json={"email": "nope@"})
    assert response.status_code == 422
    assert len(_messages(response)) == 1


def test_verify_otp_invalid_email(client):
    response = client.patch(f"{API}/verify-otp", json={"otp": "123456", "email": "x"})
    assert _messages(response) == ["email is invalid"]


def test_email_routes_see_normalized_email(client, make_user, outbox):
    make_user("carol", email="carol@gmail.com", verified=False)
    response = client.post(f"{API}/send-otp", json={"email": "Ca.Rol+promo@GMAIL.com"})
    assert response.status_code == 200
    assert outbox[-1][0] == "carol@gmail.com"


# ════════════════════════════════════════════════════════
# RESET PASSWORD LENGTH
# ════════════════════════════════════════════════════════

def test_reset_password_length_boundary(client, spy):
    calls = spy("reset_password")

    short = client.patch(f"{API}/reset-password", json={"new_password": "12345"})
    assert short.status_code == 422
    assert _messages(short) == ["minimum password length is 6"]

    # Passes the field checks; without a reset token the handler's own gate answers
    ok = client.patch(f"{API}/reset-password", json={"new_password": "123456"})
    assert ok.status_code == 401
    assert calls == []


# ════════════════════════════════════════════════════════
# ROLE GATES
# ════════════════════════════════════════════════════════

def test_change_password_requires_authentication_before_validation(client):
    response = client.patch(f"{API}/change-password", json={})
    assert response.status_code == 401


def test_change_password_rejects_unknown_role_before_validation(client, make_user, bearer, spy):
    calls = spy("change_password")
    guest = make_user("guest", role="Guest")
    response = client.patch(f"{API}/change-password", json={}, headers=bearer(guest))

    assert response.status_code == 403
    assert "errors" not in (response.json()["data"] or {})
    assert calls == []


@pytest.mark.parametrize("role_fixture", ["buyer", "seller", "admin"])
def test_change_password_allowed_roles_reach_validation(client, bearer, request, role_fixture):
    user = request.getfixturevalue(role_fixture)
    response = client.patch(f"{API}/change-password", json={}, headers=bearer(user))

    assert response.status_code == 422
    assert _messages(response) == [
        "old_password is required",
        "old_password is required",
        "minimum password length is 6",
    ]


@pytest.mark.parametrize("action", ["promote", "demote"])
@pytest.mark.parametrize("role_fixture", ["buyer", "seller"])
def test_role_routes_reject_non_admins(client, bearer, spy, request, action, role_fixture):
    calls = spy("change_role")
    user = request.getfixturevalue(role_fixture)
    response = client.patch(f"{API}/{action}/1", headers=bearer(user))

    assert response.status_code == 403
    assert calls == []


@pytest.mark.parametrize("action", ["promote", "demote"])
def test_role_routes_require_token(client, action):
    assert client.patch(f"{API}/{action}/1").status_code == 401


@pytest.mark.parametrize("action", ["promote", "demote"])
@pytest.mark.parametrize("user_id", ["abc", "-1", "999999"])
def test_admin_reaches_handler_for_any_id(client, admin, bearer, action, user_id):
    response = client.patch(f"{API}/{action}/{user_id}", headers=bearer(admin))
    # Handler answers, not the router: no 422 for a non-numeric id
    assert response.status_code == 404
    assert response.json()["message"] == "User not found"


def test_invalid_bearer_token(client):
    response = client.patch(
        f"{API}/promote/1", headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired access token"


def test_wrong_shape_after_checks_is_still_422(client, spy):
    calls = spy("authenticate")
    response = client.post(f"{API}/login", json={"username": {"nested": "value"}, "password": "secret1"})

    assert response.status_code == 422
    assert response.json()["data"]["errors"][0]["field"] == "username"
    assert calls == []
