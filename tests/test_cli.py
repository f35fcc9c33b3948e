"""Management CLI tests."""
from __future__ import annotations

from accountguard_auth.services import AccountService
from accountguard_models.mfa_factor import MfaFactor


class TestManageCli:
    def test_create_user(self, app):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["manage", "create-user", "--email", "carol@example.com", "--name", "Carol"], input="Passw0rd1\nPassw0rd1\n")

        assert result.exit_code == 0
        assert "User created" in result.output
        with app.app_context():
            user = AccountService.get_by_email("carol@example.com")
            assert user.has_password and user.verify_password("Passw0rd1")

    def test_create_user_without_password(self, app):
        result = app.test_cli_runner().invoke(args=["manage", "create-user", "--email", "dave@example.com", "--no-password"])

        assert result.exit_code == 0
        with app.app_context():
            assert AccountService.get_by_email("dave@example.com").has_password is False

    def test_duplicate_email(self, app, password_user):
        result = app.test_cli_runner().invoke(args=["manage", "create-user", "--email", password_user.email, "--no-password"])

        assert "already registered" in result.output

    def test_list_users(self, app, password_user, oauth_user):
        result = app.test_cli_runner().invoke(args=["manage", "list-users"])

        assert f"{password_user.id}: {password_user.email} - password, 0 factor(s)" in result.output
        assert f"{oauth_user.id}: {oauth_user.email} - no password, 0 factor(s)" in result.output

    def test_enroll_totp(self, app, password_user):
        result = app.test_cli_runner().invoke(args=["manage", "enroll-totp", "--email", password_user.email])

        assert result.exit_code == 0
        assert "otpauth://totp/" in result.output
        with app.app_context():
            assert MfaFactor.query.filter_by(user_id=password_user.id, status="verified").count() == 1

    def test_init_db_without_migrations(self, app):
        result = app.test_cli_runner().invoke(args=["manage", "init-db"])

        assert result.exit_code == 0
        assert "Database tables created." in result.output
