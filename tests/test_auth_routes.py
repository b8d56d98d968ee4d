"""
End-to-end tests for /api/auth through the FastAPI app.
"""

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient


def _signup(client, name="Ana", email="ana@x.com", password="secret1"):
    return client.post("/api/auth/signup", json={"name": name, "email": email, "password": password})


def _login(client, email="ana@x.com", password="secret1"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestSignupAndLogin:
    def test_signup_login_me(self, client):
        resp = _signup(client)
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["token"]
        assert "user" not in body

        resp = _login(client)
        assert resp.status_code == 200
        body = resp.json()
        assert body["user"]["email"] == "ana@x.com"
        assert body["user"]["name"] == "Ana"
        assert body["user"]["isEmailVerified"] is False
        assert "createdAt" not in body["user"]
        assert set(body["user"]) == {"id", "name", "email", "isEmailVerified"}

        resp = client.get("/api/auth/me", headers=_bearer(body["token"]))
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert user["isEmailVerified"] is False
        assert user["createdAt"]
        assert user["id"] == body["user"]["id"]

    def test_signup_token_passes_gate(self, client):
        token = _signup(client).json()["token"]
        assert client.get("/api/auth/me", headers=_bearer(token)).status_code == 200

    def test_duplicate_signup(self, client):
        _signup(client)
        resp = _signup(client, name="Other", password="another1")
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "User already exists with this email"}

    def test_signup_validates_body(self, client):
        resp = client.post("/api/auth/signup", json={"name": "Ana", "email": "not-an-email", "password": "secret1"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

        resp = client.post("/api/auth/signup", json={"email": "ana@x.com", "password": "secret1"})
        assert resp.status_code == 400

        resp = _signup(client, password="123")
        assert resp.status_code == 400

    def test_password_limit_counts_bytes(self, client):
        # 40 characters, 80 bytes in UTF-8.
        resp = _signup(client, password="\u00e9" * 40)
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert "72 bytes" in resp.json()["message"]

        # 36 characters, exactly 72 bytes.
        resp = _signup(client, password="\u00e9" * 36)
        assert resp.status_code == 201
        assert _login(client, password="\u00e9" * 36).status_code == 200

    def test_signup_succeeds_when_email_fails(self, client, dispatcher):
        dispatcher.fail = True
        resp = _signup(client)
        assert resp.status_code == 201
        assert resp.json()["message"] == "User registered successfully. Email verification could not be sent."
        assert resp.json()["token"]

    def test_login_missing_fields(self, client):
        resp = client.post("/api/auth/login", json={"email": "ana@x.com"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Please provide email and password"

    def test_login_failures_indistinguishable(self, client):
        _signup(client)
        wrong_password = _login(client, password="nope")
        unknown_user = _login(client, email="bob@x.com")

        assert wrong_password.status_code == unknown_user.status_code == 401
        assert wrong_password.json() == unknown_user.json() == {
            "success": False,
            "message": "Invalid credentials",
        }

    def test_auth_responses_not_cached(self, client):
        resp = _signup(client)
        assert resp.headers["Cache-Control"] == "no-store"
        assert "X-Process-Time" in resp.headers


class TestSessionGate:
    def test_missing_header(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["success"] is False

    def test_non_bearer_scheme(self, client):
        token = _signup(client).json()["token"]
        resp = client.get("/api/auth/me", headers={"Authorization": f"Basic {token}"})
        assert resp.status_code == 401

    def test_garbage_token(self, client):
        resp = client.get("/api/auth/me", headers=_bearer("garbage"))
        assert resp.status_code == 401

    def test_deleted_user(self, client, user_store):
        token = _signup(client).json()["token"]
        user_store._users.clear()
        resp = client.get("/api/auth/me", headers=_bearer(token))
        assert resp.status_code == 401


class TestVerifyEmail:
    def test_verify_once(self, client, dispatcher):
        token = _signup(client).json()["token"]
        raw = dispatcher.last_token("verify-email")

        resp = client.get(f"/api/auth/verify-email/{raw}")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Email verified successfully"}

        me = client.get("/api/auth/me", headers=_bearer(token)).json()
        assert me["user"]["isEmailVerified"] is True

        resp = client.get(f"/api/auth/verify-email/{raw}")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid or expired verification token"

    def test_expired_token(self, client, dispatcher, user_store):
        _signup(client)
        raw = dispatcher.last_token("verify-email")
        user = next(iter(user_store._users.values()))
        user.email_verification_expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

        resp = client.get(f"/api/auth/verify-email/{raw}")
        assert resp.status_code == 400


class TestResendVerification:
    def test_requires_auth(self, client):
        assert client.post("/api/auth/resend-verification").status_code == 401

    def test_resend(self, client, dispatcher):
        token = _signup(client).json()["token"]
        resp = client.post("/api/auth/resend-verification", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["message"] == "Verification email sent"
        assert len(dispatcher.sent) == 2

    def test_already_verified(self, client, dispatcher):
        token = _signup(client).json()["token"]
        client.get(f"/api/auth/verify-email/{dispatcher.last_token('verify-email')}")

        resp = client.post("/api/auth/resend-verification", headers=_bearer(token))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Email is already verified"

    def test_dispatch_failure(self, client, dispatcher):
        token = _signup(client).json()["token"]
        dispatcher.fail = True
        resp = client.post("/api/auth/resend-verification", headers=_bearer(token))
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "message": "Email could not be sent"}


class TestPasswordReset:
    def test_example_flow(self, client, dispatcher):
        old_token = _signup(client).json()["token"]

        resp = client.post("/api/auth/forgot-password", json={"email": "ana@x.com"})
        assert resp.status_code == 200
        assert resp.json()["message"] == "Password reset email sent"
        raw = dispatcher.last_token("reset-password")

        resp = client.put(f"/api/auth/reset-password/{raw}", json={"password": "newpass"})
        assert resp.status_code == 200
        assert resp.json()["token"]

        assert _login(client, password="secret1").status_code == 401
        assert _login(client, password="newpass").status_code == 200
        # No global session invalidation.
        assert client.get("/api/auth/me", headers=_bearer(old_token)).status_code == 200

        resp = client.put(f"/api/auth/reset-password/{raw}", json={"password": "third1"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid or expired reset token"

    def test_oversized_password_keeps_reset_token(self, client, dispatcher):
        _signup(client)
        client.post("/api/auth/forgot-password", json={"email": "ana@x.com"})
        raw = dispatcher.last_token("reset-password")

        resp = client.put(f"/api/auth/reset-password/{raw}", json={"password": "\u00e9" * 40})
        assert resp.status_code == 400
        assert "72 bytes" in resp.json()["message"]

        resp = client.put(f"/api/auth/reset-password/{raw}", json={"password": "newpass"})
        assert resp.status_code == 200
        assert _login(client, password="newpass").status_code == 200

    def test_unknown_email(self, client):
        resp = client.post("/api/auth/forgot-password", json={"email": "ghost@x.com"})
        assert resp.status_code == 404
        assert resp.json()["message"] == "No user found with this email"

    def test_dispatch_failure(self, client, dispatcher):
        _signup(client)
        dispatcher.fail = True
        resp = client.post("/api/auth/forgot-password", json={"email": "ana@x.com"})
        assert resp.status_code == 500
        assert resp.json()["message"] == "Email could not be sent"

    def test_expired_reset_token(self, client, dispatcher, user_store):
        _signup(client)
        client.post("/api/auth/forgot-password", json={"email": "ana@x.com"})
        raw = dispatcher.last_token("reset-password")
        user = next(iter(user_store._users.values()))
        user.reset_password_expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

        resp = client.put(f"/api/auth/reset-password/{raw}", json={"password": "newpass"})
        assert resp.status_code == 400
        assert _login(client, password="secret1").status_code == 200


class TestUnhandledErrors:
    def test_internal_error_message_surfaces(self, app, monkeypatch):
        service = app.state.auth_service

        async def boom(*args, **kwargs):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(service.store, "find_by_email", boom)
        client = TestClient(app, raise_server_exceptions=False)

        resp = _login(client)
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "message": "store unavailable"}
