"""Error mapping and rate limiting tests."""
from __future__ import annotations

import pytest

from accountguard_ext.errors import AuthError, BackendError, RateLimitError, ValidationError
from conftest import NEW_PASSWORD, PASSWORD


class TestErrorClasses:
    @pytest.mark.parametrize(
        ("error_cls", "code", "status"),
        [
            (ValidationError, "VALIDATION", 400),
            (AuthError, "AUTH", 401),
            (RateLimitError, "RATE_LIMIT", 429),
            (BackendError, "BACKEND", 500),
        ],
    )
    def test_defaults(self, error_cls, code, status):
        error = error_cls(user_msg="boom")

        assert (error.code, error.http_status, str(error)) == (code, status, "boom")


class TestErrorResponses:
    def test_api_404_is_json(self, client):
        response = client.get("/api/auth/nowhere")

        assert response.status_code == 404
        assert response.get_json() == {"error": "Not found", "code": "NOT_FOUND"}
        assert response.headers["X-Request-ID"]

    def test_page_404_renders_template(self, client):
        response = client.get("/nowhere", headers={"Accept": "text/html"})

        assert response.status_code == 404
        assert response.mimetype == "text/html"
        assert b"Not found" in response.data

    def test_unexpected_error_is_generic(self, app, client, login, password_user, monkeypatch):
        def _explode(user_id):
            raise RuntimeError("database on fire")

        monkeypatch.setattr("accountguard_auth.routes.AccountService.load_account", staticmethod(_explode))
        login(password_user)

        response = client.post("/api/auth/change-password", json={"newPassword": NEW_PASSWORD})

        assert response.status_code == 500
        assert response.get_json()["error"] == "An unexpected error occurred"
        assert "fire" not in response.get_data(as_text=True)

    @pytest.mark.parametrize(
        "path",
        ["/api/auth/change-password", "/api/auth/social/connect", "/api/auth/verify", "/api/auth/verify/email"],
    )
    def test_failed_user_load(self, client, login, password_user, monkeypatch, path):
        def _missing(user_id):
            raise BackendError(user_msg="Failed to get user data")

        monkeypatch.setattr("accountguard_auth.routes.AccountService.load_account", staticmethod(_missing))
        login(password_user)

        response = client.post(path, json={"newPassword": NEW_PASSWORD})

        assert response.status_code == 500
        assert response.get_json()["error"] == "Failed to get user data"


class TestRateLimit:
    def test_change_password_is_limited_per_ip(self, app, client, login, device_session, password_user):
        app.config["RATES"] = {**app.config["RATES"], "AUTH": "2 per minute"}
        login(password_user)
        device_session(password_user)
        payload = {"currentPassword": "Wrong1234", "newPassword": NEW_PASSWORD}

        statuses = [client.post("/api/auth/change-password", json=payload).status_code for _ in range(2)]
        limited = client.post("/api/auth/change-password", json={"currentPassword": PASSWORD, "newPassword": NEW_PASSWORD})

        assert statuses == [400, 400]
        assert limited.status_code == 429
        assert limited.get_json()["error"] == "Too many requests. Please try again later."
        assert "Retry-After" in limited.headers

    def test_limit_applies_before_authentication(self, app, client):
        app.config["RATES"] = {**app.config["RATES"], "AUTH": "1 per minute"}
        payload = {"currentPassword": PASSWORD, "newPassword": NEW_PASSWORD}

        statuses = [client.post("/api/auth/change-password", json=payload).status_code for _ in range(3)]

        assert statuses == [401, 429, 429]

    def test_limit_is_keyed_by_forwarded_ip(self, app, client, login, device_session, password_user):
        app.config["RATES"] = {**app.config["RATES"], "AUTH": "1 per minute"}
        login(password_user)
        device_session(password_user)
        payload = {"currentPassword": "Wrong1234", "newPassword": NEW_PASSWORD}

        first = client.post("/api/auth/change-password", json=payload, headers={"X-Forwarded-For": "203.0.113.1"})
        other_ip = client.post("/api/auth/change-password", json=payload, headers={"X-Forwarded-For": "203.0.113.2"})
        repeat = client.post("/api/auth/change-password", json=payload, headers={"X-Forwarded-For": "203.0.113.1"})

        assert (first.status_code, other_ip.status_code, repeat.status_code) == (400, 400, 429)
