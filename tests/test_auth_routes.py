"""
tests/test_auth_routes.py -- Integration tests for /auth/register and /auth/login.

Coverage:
  - register: 201 active / pending messages, duplicate email 400, unknown role 400,
    body validation 422, numeric cellNumber accepted
  - login: 200 {token, type: "Bearer"}, token usable on protected routes,
    wrong password / unknown email 401 with identical body, no-store header
  - passwords are capped at 72 UTF-8 bytes, not 72 characters
  - login rate limit: 429 with the error envelope and Retry-After
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from api.limiter import limiter
from auth.store import UserStore
from auth.tokens import verify_token
from core.config import get_settings


def _registration(email: str, roles: list[str] | None = None) -> dict:
    return {
        "fullName": "Grace Hopper",
        "cellNumber": "5550199",
        "email": email,
        "password": "cobol-rules-1959",
        "roles": roles if roles is not None else ["user"],
    }


class TestRegister:
    def test_register_user_is_active(self, api_client: tuple[TestClient, UserStore, str]) -> None:
        client, store, _token = api_client
        resp = client.post("/auth/register", json=_registration("grace@example.com"))
        assert resp.status_code == 201, resp.text
        assert resp.json() == {"message": "Registration successful. You can now log in to your account."}
        user = store.get_by_email("grace@example.com")
        assert user.status == "active"
        assert user.full_name == "Grace Hopper"
        assert user.cell_number == "5550199"

    def test_register_admin_is_pending(self, api_client) -> None:
        client, store, _token = api_client
        resp = client.post("/auth/register", json=_registration("wannabe@example.com", ["admin"]))
        assert resp.status_code == 201
        assert "pending activation" in resp.json()["message"]
        assert store.get_by_email("wannabe@example.com").status == "pending"

    def test_register_without_roles_gets_default(self, api_client) -> None:
        client, store, _token = api_client
        body = _registration("noroles@example.com")
        del body["roles"]
        assert client.post("/auth/register", json=body).status_code == 201
        assert store.get_by_email("noroles@example.com").roles == ["ROLE_USER"]

    def test_duplicate_email_is_400_and_not_duplicated(self, api_client) -> None:
        client, store, _token = api_client
        assert client.post("/auth/register", json=_registration("twice@example.com")).status_code == 201
        for _ in range(2):
            resp = client.post("/auth/register", json=_registration("twice@example.com", ["admin"]))
            assert resp.status_code == 400
            assert "already exists" in resp.json()["error"]["message"]
        assert store.get_by_email("twice@example.com").status == "active"
        assert [u.email for u in store.list_by_status("active")].count("twice@example.com") == 1

    def test_email_case_does_not_bypass_uniqueness(self, api_client) -> None:
        client, _store, _token = api_client
        client.post("/auth/register", json=_registration("case@example.com"))
        resp = client.post("/auth/register", json=_registration("CASE@Example.com"))
        assert resp.status_code == 400

    def test_unknown_role_is_400(self, api_client) -> None:
        client, store, _token = api_client
        resp = client.post("/auth/register", json=_registration("ghostrole@example.com", ["wizard"]))
        assert resp.status_code == 400
        assert resp.json()["error"] == {"code": "unknown_role", "message": "WIZARD role not found"}
        assert store.get_by_email("ghostrole@example.com") is None

    def test_numeric_cell_number_accepted(self, api_client) -> None:
        client, store, _token = api_client
        body = _registration("numeric@example.com")
        body["cellNumber"] = 5550123
        assert client.post("/auth/register", json=body).status_code == 201
        assert store.get_by_email("numeric@example.com").cell_number == "5550123"

    def test_invalid_body_is_422(self, api_client) -> None:
        client, _store, _token = api_client
        resp = client.post("/auth/register", json={"email": "not-an-email", "password": "short"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


class TestLogin:
    def test_login_returns_bearer_token(self, api_client) -> None:
        client, _store, _token = api_client
        client.post("/auth/register", json=_registration("login@example.com"))
        resp = client.post("/auth/login", json={"email": "login@example.com", "password": "cobol-rules-1959"})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["type"] == "Bearer"
        claims = verify_token(data["token"])
        assert claims.subject == "login@example.com"
        assert claims.roles == ["ROLE_USER"]
        assert resp.headers["cache-control"] == "no-store"

    def test_login_token_opens_user_area(self, api_client) -> None:
        client, _store, _token = api_client
        client.post("/auth/register", json=_registration("area@example.com"))
        token = client.post("/auth/login", json={"email": "area@example.com", "password": "cobol-rules-1959"}).json()[
            "token"
        ]
        resp = client.get("/user/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["email"] == "area@example.com"

    def test_wrong_password_and_unknown_email_look_the_same(self, api_client) -> None:
        client, _store, _token = api_client
        wrong = client.post("/auth/login", json={"email": "admin@example.com", "password": "nope-nope"})
        unknown = client.post("/auth/login", json={"email": "nobody@example.com", "password": "nope-nope"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["code"] == "bad_credentials"

    def test_pending_account_can_log_in_but_not_use_token(self, api_client) -> None:
        client, _store, _token = api_client
        client.post("/auth/register", json=_registration("parked@example.com", ["moderator"]))
        resp = client.post("/auth/login", json={"email": "parked@example.com", "password": "cobol-rules-1959"})
        assert resp.status_code == 200
        token = resp.json()["token"]
        resp = client.get("/moderator/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403
        assert resp.json()["error"]["message"] == "Account is pending approval. Please contact admin."


class TestPasswordLength:
    def test_multibyte_password_over_72_bytes_is_422(self, api_client) -> None:
        client, store, _token = api_client
        body = _registration("accents@example.com")
        body["password"] = "é" * 40  # 40 characters, 80 bytes
        resp = client.post("/auth/register", json=body)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"
        assert store.get_by_email("accents@example.com") is None

    def test_multibyte_password_within_72_bytes_registers(self, api_client) -> None:
        client, _store, _token = api_client
        body = _registration("accents-ok@example.com")
        body["password"] = "é" * 36
        assert client.post("/auth/register", json=body).status_code == 201
        resp = client.post("/auth/login", json={"email": "accents-ok@example.com", "password": "é" * 36})
        assert resp.status_code == 200


class TestLoginRateLimit:
    def test_limit_trips_with_429_envelope_and_retry_after(self, api_client) -> None:
        client, _store, _token = api_client
        allowed = int(get_settings().login_rate_limit.split("/")[0])
        limiter.reset()
        try:
            codes = [
                client.post("/auth/login", json={"email": "flood@example.com", "password": "wrong-pass"}).status_code
                for _ in range(allowed)
            ]
            assert codes == [401] * allowed

            resp = client.post("/auth/login", json={"email": "admin@example.com", "password": "admin-pass-123"})
            assert resp.status_code == 429
            assert resp.json()["error"]["code"] == "rate_limited"
            assert int(resp.headers["Retry-After"]) > 0
        finally:
            limiter.reset()

    def test_limit_does_not_apply_to_registration(self, api_client) -> None:
        client, _store, _token = api_client
        allowed = int(get_settings().login_rate_limit.split("/")[0])
        limiter.reset()
        try:
            for _ in range(allowed):
                client.post("/auth/login", json={"email": "flood@example.com", "password": "wrong-pass"})
            resp = client.post("/auth/register", json=_registration("after-flood@example.com"))
            assert resp.status_code == 201
        finally:
            limiter.reset()
