"""Step-up verification tests.

Tests cover:
- TOTP verification against enrolled factors
- Password and emailed-code verification for accounts without 2FA
- Restarting the grace period after a successful step-up
"""
from __future__ import annotations

from datetime import timedelta

from accountguard_auth import totp
from accountguard_ext.db import db
from accountguard_models.account_event import AccountEvent
from accountguard_models.device_session import DeviceSession
from accountguard_models.otp import OneTimePasscode
from conftest import NEW_PASSWORD, PASSWORD

VERIFY = "/api/auth/verify"
SEND_CODE = "/api/auth/verify/email"


def _device(app, device_id: str) -> DeviceSession:
    with app.app_context():
        record = db.session.get(DeviceSession, device_id)
        db.session.expunge(record)
        return record


class TestTotpVerification:
    def test_valid_code_marks_device_verified(self, app, client, login, device_session, enroll_totp, password_user):
        login(password_user)
        device_id = device_session(password_user, verified=False)
        factor_id, secret = enroll_totp(password_user)

        response = client.post(VERIFY, json={"method": "totp", "factorId": factor_id, "code": totp.totp(secret)})

        assert response.status_code == 200
        assert _device(app, device_id).last_verified_at is not None
        with app.app_context():
            event = AccountEvent.query.filter_by(user_id=password_user.id, event_type="SENSITIVE_ACTION_VERIFIED").one()
            assert event.metadata_json["method"] == "totp"

    def test_verified_device_then_changes_password(self, app, client, login, device_session, enroll_totp, password_user):
        """The challenge flow: blocked, verify, then the change goes through."""
        login(password_user)
        device_session(password_user, verified=False)
        factor_id, secret = enroll_totp(password_user)
        payload = {"currentPassword": PASSWORD, "newPassword": NEW_PASSWORD}

        challenge = client.post("/api/auth/change-password", json=payload).get_json()
        assert challenge["requiresTwoFactor"] is True

        client.post(VERIFY, json={"method": "totp", "factorId": challenge["factorId"], "code": totp.totp(secret)})
        response = client.post("/api/auth/change-password", json=payload)

        assert response.get_json() == {}

    def test_invalid_code(self, app, client, login, device_session, enroll_totp, password_user):
        login(password_user)
        device_id = device_session(password_user, verified=False)
        factor_id, _ = enroll_totp(password_user)

        response = client.post(VERIFY, json={"method": "totp", "factorId": factor_id, "code": "000000"})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid verification code"
        assert _device(app, device_id).last_verified_at is None

    def test_other_users_factor_is_rejected(self, client, login, device_session, enroll_totp, password_user, oauth_user):
        login(password_user)
        device_session(password_user, verified=False)
        enroll_totp(password_user)
        factor_id, secret = enroll_totp(oauth_user)

        response = client.post(VERIFY, json={"method": "totp", "factorId": factor_id, "code": totp.totp(secret)})

        assert response.status_code == 400

    def test_basic_methods_refused_when_2fa_enrolled(self, client, login, device_session, enroll_totp, password_user):
        login(password_user)
        device_session(password_user, verified=False)
        enroll_totp(password_user)

        response = client.post(VERIFY, json={"method": "password", "password": PASSWORD})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Two-factor verification required"


class TestPasswordVerification:
    def test_correct_password(self, app, client, login, device_session, password_user):
        login(password_user)
        device_id = device_session(password_user, verified=False)

        response = client.post(VERIFY, json={"method": "password", "password": PASSWORD})

        assert response.status_code == 200
        assert _device(app, device_id).last_verified_at is not None

    def test_incorrect_password(self, client, login, device_session, password_user):
        login(password_user)
        device_session(password_user, verified=False)

        response = client.post(VERIFY, json={"method": "password", "password": "nope12345"})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Incorrect password"

    def test_account_without_password(self, client, login, device_session, oauth_user):
        login(oauth_user)
        device_session(oauth_user, verified=False)

        response = client.post(VERIFY, json={"method": "password", "password": "anything1"})

        assert response.get_json()["error"] == "Password verification is not available"

    def test_unknown_method(self, client, login, device_session, password_user):
        login(password_user)
        device_session(password_user, verified=False)

        response = client.post(VERIFY, json={"method": "sms"})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid verification method"

    def test_missing_device_session(self, client, login, password_user):
        login(password_user)

        response = client.post(VERIFY, json={"method": "password", "password": PASSWORD})

        assert response.status_code == 401
        assert response.get_json()["error"] == "No device session found"


class TestEmailVerification:
    def test_send_and_verify_code(self, app, client, login, device_session, oauth_user, outbox):
        login(oauth_user)
        device_id = device_session(oauth_user, verified=False)

        sent = client.post(SEND_CODE)
        assert sent.status_code == 200
        assert len(outbox) == 1
        assert outbox[0]["template"] == "verification_code"
        code = outbox[0]["context"]["otp"]

        response = client.post(VERIFY, json={"method": "email", "code": code})

        assert response.status_code == 200
        assert _device(app, device_id).last_verified_at is not None
        with app.app_context():
            assert OneTimePasscode.query.filter_by(user_id=oauth_user.id).count() == 0

    def test_resend_is_throttled(self, client, login, device_session, oauth_user, outbox):
        login(oauth_user)
        device_session(oauth_user, verified=False)

        client.post(SEND_CODE)
        response = client.post(SEND_CODE)

        assert response.status_code == 429
        assert response.get_json()["error"] == "Please wait before requesting another code"
        assert len(outbox) == 1

    def test_wrong_code(self, client, login, device_session, oauth_user, outbox):
        login(oauth_user)
        device_session(oauth_user, verified=False)
        client.post(SEND_CODE)
        wrong = "000000" if outbox[0]["context"]["otp"] != "000000" else "111111"

        response = client.post(VERIFY, json={"method": "email", "code": wrong})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid verification code"

    def test_expired_code(self, app, client, login, device_session, oauth_user, outbox):
        login(oauth_user)
        device_session(oauth_user, verified=False)
        client.post(SEND_CODE)
        with app.app_context():
            record = OneTimePasscode.query.filter_by(user_id=oauth_user.id).one()
            record.expires_at = record.expires_at - timedelta(hours=1)
            db.session.commit()

        response = client.post(VERIFY, json={"method": "email", "code": outbox[0]["context"]["otp"]})

        assert response.status_code == 400
        assert response.get_json()["error"] == "This code has expired. Request a new one."

    def test_no_code_issued(self, client, login, device_session, oauth_user):
        login(oauth_user)
        device_session(oauth_user, verified=False)

        response = client.post(VERIFY, json={"method": "email", "code": "123456"})

        assert response.get_json()["error"] == "Verification code not found. Request a new one."

    def test_code_is_bound_to_requesting_device(self, app, client, login, device_session, oauth_user, outbox):
        login(oauth_user)
        device_session(oauth_user, verified=False)
        client.post(SEND_CODE)
        other_device = device_session(oauth_user, verified=False)

        response = client.post(VERIFY, json={"method": "email", "code": outbox[0]["context"]["otp"]})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid verification code"
        assert _device(app, other_device).last_verified_at is None

    def test_send_refused_with_2fa(self, client, login, device_session, enroll_totp, password_user, outbox):
        login(password_user)
        device_session(password_user, verified=False)
        enroll_totp(password_user)

        response = client.post(SEND_CODE)

        assert response.status_code == 400
        assert response.get_json()["error"] == "Two-factor verification required"
        assert outbox == []

    def test_real_send_renders_templates(self, client, login, device_session, oauth_user):
        """With delivery suppressed the templates still render."""
        login(oauth_user)
        device_session(oauth_user, verified=False)

        response = client.post(SEND_CODE)

        assert response.status_code == 200
