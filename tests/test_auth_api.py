"""Tests for registration, sessions, email verification and password reset."""

import pytest

from services.auth_service import AuthService
from utils.config import SESSION_COOKIE_NAME


@pytest.fixture
def fixed_otp(monkeypatch):
    monkeypatch.setattr("services.auth_service.generate_otp", lambda: "123456")
    return "123456"


class TestRegisterAndLogin:
    def test_register_sets_cookie(self, client, register_user, outbox):
        response = register_user()

        assert response.json() == {"success": True, "message": "Registered"}
        assert SESSION_COOKIE_NAME in response.cookies
        assert "httponly" in response.headers["set-cookie"].lower()
        assert outbox[0]["to"] == "ada@example.com"

    def test_missing_details(self, client):
        response = client.post("/api/auth/register", json={"name": "", "email": "a@example.com", "password": "x"})
        assert response.json() == {"success": False, "message": "Missing Details"}

    def test_duplicate_email(self, client, register_user):
        register_user()
        assert register_user(email="ADA@example.com").json()["success"] is False

    def test_concurrent_duplicate_email(self, client, register_user, monkeypatch):
        register_user()

        async def not_found_yet(session, email):
            return None

        # The second request checks before the first one's insert is visible
        monkeypatch.setattr(AuthService, "get_user_by_email", staticmethod(not_found_yet))
        response = register_user()

        assert response.status_code == 200
        assert response.json() == {"success": False, "message": "User already exists"}

    def test_invalid_email(self, client, register_user):
        assert register_user(email="not-an-email").json() == {"success": False, "message": "Invalid email address"}

    def test_login(self, client, register_user):
        register_user()
        client.cookies.clear()

        bad = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "wrong"})
        assert bad.json() == {"success": False, "message": "Invalid password"}

        good = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "s3cret-pass"})
        assert good.json()["success"] is True
        assert SESSION_COOKIE_NAME in good.cookies

    def test_login_unknown_email(self, client):
        response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "x"})
        assert response.json()["success"] is False

    def test_welcome_mail_failure_still_registers(self, client, register_user, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("smtp down")

        monkeypatch.setattr("services.auth_service.send_email_html", broken)
        assert register_user().json()["success"] is True


class TestSession:
    def test_is_authenticated(self, client, register_user):
        assert client.get("/api/auth/isAuthenticated").json()["success"] is False
        register_user()
        assert client.get("/api/auth/isAuthenticated").json()["success"] is True

    def test_logout_clears_cookie(self, client, register_user):
        register_user()
        response = client.post("/api/auth/logout")

        assert response.json() == {"success": True, "message": "Logged out"}
        assert client.get("/api/auth/isAuthenticated").json()["success"] is False

    def test_tampered_token_rejected(self, client):
        client.cookies.set(SESSION_COOKIE_NAME, "not-a-jwt")
        assert client.get("/api/auth/isAuthenticated").json()["success"] is False

    def test_user_data(self, client, register_user):
        assert client.get("/api/user/data").status_code == 401
        register_user()

        body = client.get("/api/user/data").json()
        assert body == {"success": True, "userData": {"name": "Ada", "isAccountVerified": False}}


class TestEmailVerification:
    def test_verify_flow(self, client, register_user, outbox, fixed_otp):
        register_user()
        sent = client.post("/api/auth/send-otp").json()

        assert sent["success"] is True
        assert fixed_otp in outbox[-1]["html"]

        assert client.post("/api/auth/verify-email", json={"otp": "000000"}).json()["message"] == "Invalid OTP"
        assert client.post("/api/auth/verify-email", json={"otp": fixed_otp}).json()["success"] is True
        assert client.get("/api/user/data").json()["userData"]["isAccountVerified"] is True

        again = client.post("/api/auth/send-otp").json()
        assert again == {"success": True, "message": "Account is already verified"}

    def test_otp_cannot_be_reused(self, client, register_user, fixed_otp):
        register_user()
        client.post("/api/auth/send-otp")
        client.post("/api/auth/verify-email", json={"otp": fixed_otp})

        assert client.post("/api/auth/verify-email", json={"otp": fixed_otp}).json()["success"] is False

    def test_expired_otp(self, client, register_user, fixed_otp, monkeypatch):
        register_user()
        client.post("/api/auth/send-otp")
        monkeypatch.setattr("services.auth_service._now_ms", lambda: 10 ** 15)

        assert client.post("/api/auth/verify-email", json={"otp": fixed_otp}).json() == {
            "success": False,
            "message": "OTP expired",
        }

    def test_otp_mail_failure_reported(self, client, register_user, monkeypatch):
        register_user()

        def broken(*args, **kwargs):
            raise RuntimeError("smtp down")

        monkeypatch.setattr("services.auth_service.send_email_html", broken)
        assert client.post("/api/auth/send-otp").json()["success"] is False

    def test_anonymous_send_otp(self, client):
        assert client.post("/api/auth/send-otp").json()["success"] is False


class TestPasswordReset:
    def test_reset_flow(self, client, register_user, outbox, fixed_otp):
        register_user()
        client.cookies.clear()

        assert client.post("/api/auth/reset-password-otp", json={"email": "ada@example.com"}).json()["success"] is True
        result = client.post(
            "/api/auth/reset-password",
            json={"email": "ada@example.com", "otp": fixed_otp, "newPassword": "n3w-pass"},
        ).json()

        assert result["success"] is True
        assert outbox[-1]["subject"] == "Password Changed"
        login = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "n3w-pass"})
        assert login.json()["success"] is True

    def test_wrong_otp(self, client, register_user, fixed_otp):
        register_user()
        client.post("/api/auth/reset-password-otp", json={"email": "ada@example.com"})
        result = client.post(
            "/api/auth/reset-password",
            json={"email": "ada@example.com", "otp": "999999", "newPassword": "x"},
        ).json()

        assert result == {"success": False, "message": "Invalid OTP"}

    def test_unknown_email(self, client):
        result = client.post("/api/auth/reset-password-otp", json={"email": "ghost@example.com"}).json()
        assert result == {"success": False, "message": "User not found"}

    def test_empty_fields(self, client):
        result = client.post("/api/auth/reset-password", json={"email": "", "otp": "", "newPassword": ""}).json()
        assert result["success"] is False
