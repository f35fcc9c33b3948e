"""Server-rendered account password page tests."""
from __future__ import annotations

from accountguard_models.device_session import DeviceSession


class TestPasswordPage:
    def test_change_form_for_password_account(self, client, login, device_session, password_user):
        login(password_user)
        device_session(password_user)

        response = client.get("/account/password")

        html = response.get_data(as_text=True)
        assert response.status_code == 200
        assert 'name="current_password"' in html
        assert 'aria-label="Show password"' in html
        assert 'onclick="history.back()"' in html
        assert "Change password" in html

    def test_add_form_for_oauth_account(self, client, login, device_session, oauth_user):
        login(oauth_user)
        device_session(oauth_user)

        response = client.get("/account/password")

        html = response.get_data(as_text=True)
        assert 'name="current_password"' not in html
        assert 'name="new_password"' in html
        assert "Add password" in html

    def test_issues_device_session_when_missing(self, app, client, login, password_user):
        login(password_user)

        response = client.get("/account/password", headers={"User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.4; rv:124.0) Gecko/20100101 Firefox/124.0"})

        assert app.config["DEVICE_SESSION_COOKIE_NAME"] in " ".join(response.headers.getlist("Set-Cookie"))
        with app.app_context():
            record = DeviceSession.query.filter_by(user_id=password_user.id).one()
            assert (record.device_name, record.browser) == ("Macintosh", "Firefox")
            assert record.last_verified_at is None

    def test_keeps_existing_device_session(self, app, client, login, device_session, password_user):
        login(password_user)
        device_session(password_user)

        response = client.get("/account/password")

        assert app.config["DEVICE_SESSION_COOKIE_NAME"] not in " ".join(response.headers.getlist("Set-Cookie"))
        with app.app_context():
            assert DeviceSession.query.filter_by(user_id=password_user.id).count() == 1

    def test_requires_login(self, client):
        response = client.get("/account/password", headers={"Accept": "text/html"})

        assert response.status_code == 401
