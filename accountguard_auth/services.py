"""Domain services that encapsulate account persistence and provider linking."""
from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote, urlencode

from authlib.common.errors import AuthlibBaseError
from flask import current_app
from flask_login import current_user
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from accountguard_auth import totp
from accountguard_ext import oauth as oauth_ext
from accountguard_ext.db import db
from accountguard_ext.errors import GENERIC_ERROR_MESSAGE, BackendError, ValidationError
from accountguard_ext.logging import log_error
from accountguard_models.identity import LinkedIdentity
from accountguard_models.mfa_factor import FACTOR_TOTP, STATUS_VERIFIED, MfaFactor
from accountguard_models.user import User


class IdentityConflictError(ValidationError):
    """The provider account is already linked to a different user."""


class AccountService:
    """Password and factor management for existing users."""

    @staticmethod
    def get_by_email(email: str) -> Optional[User]:
        return User.query.filter_by(email=email.lower().strip()).first()

    @staticmethod
    def create_user(email: str, password: str | None = None, full_name: str | None = None) -> User:
        if AccountService.get_by_email(email):
            raise ValueError("Email is already registered")
        user = User(email=email.lower().strip(), full_name=(full_name or "").strip() or None)
        if password:
            user.set_password(password)
            user.has_password = True
        db.session.add(user)
        db.session.commit()
        current_app.logger.info("New user created", extra={"component": "accounts", "user_id": user.id})
        return user

    @staticmethod
    def load_account(user_id: int) -> User:
        """Fresh copy of the user row; missing rows and DB failures are a backend error."""
        try:
            user = db.session.get(User, user_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise BackendError(user_msg="Failed to get user data", detail=str(exc)) from exc
        if user is None:
            raise BackendError(user_msg="Failed to get user data")
        return user

    @staticmethod
    def current_account() -> User:
        """The signed-in user, reloaded through :meth:`load_account`."""
        return AccountService.load_account(int(current_user.get_id()))

    @staticmethod
    def update_password(user: User, new_password: str) -> None:
        user.set_password(new_password)
        try:
            db.session.add(user)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise BackendError(user_msg=GENERIC_ERROR_MESSAGE, detail=str(exc)) from exc

    @staticmethod
    def mark_has_password(user: User) -> bool:
        """Set the ``has_password`` flag; failure leaves the new password in place."""
        if user.has_password:
            return True
        try:
            user.has_password = True
            db.session.add(user)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            log_error("failed to update has_password flag", component="accounts", exc_info=True, user_id=user.id)
            return False
        return True

    @staticmethod
    def enroll_totp(user: User, friendly_name: str | None = None, *, verified: bool = True) -> MfaFactor:
        factor = MfaFactor(
            user_id=user.id,
            factor_type=FACTOR_TOTP,
            friendly_name=friendly_name,
            secret=totp.generate_secret(),
            status=STATUS_VERIFIED if verified else "unverified",
        )
        db.session.add(factor)
        db.session.commit()
        return factor


class IdentityService:
    """Link OAuth provider accounts to existing users."""

    @staticmethod
    def find(user: User, provider: str) -> Optional[LinkedIdentity]:
        return LinkedIdentity.query.filter_by(user_id=user.id, provider=provider).first()

    @staticmethod
    def callback_url(origin: str, provider: str, next_url: str | None) -> str:
        query = urlencode(
            {"provider": provider, "next": next_url or "/", "is_provider_connection": "true"},
            quote_via=quote,
        )
        return f"{origin.rstrip('/')}/api/auth/callback?{query}"

    @staticmethod
    def build_link_url(user: User, provider: str, *, origin: str, next_url: str | None) -> str:
        """Start the provider's authorisation flow and return the URL to visit."""
        if IdentityService.find(user, provider) is not None:
            raise ValidationError(user_msg=f"{provider.capitalize()} account is already connected")
        client = oauth_ext.get_client(provider)
        if client is None:
            raise ValidationError(user_msg=f"{provider.capitalize()} sign-in is not configured")
        redirect_uri = IdentityService.callback_url(origin, provider, next_url)
        try:
            rv = client.create_authorization_url(redirect_uri)
            client.save_authorize_data(redirect_uri=redirect_uri, **rv)
        except AuthlibBaseError as exc:
            raise ValidationError(user_msg=exc.description or str(exc)) from exc
        return rv["url"]

    @staticmethod
    def fetch_profile(provider: str) -> dict[str, Any]:
        """Exchange the callback code for a token and return the provider profile."""
        client = oauth_ext.get_client(provider)
        if client is None:
            raise ValidationError(user_msg=f"{provider.capitalize()} sign-in is not configured")
        token = client.authorize_access_token()
        profile = token.get("userinfo") if isinstance(token, dict) else None
        if not profile:
            profile = client.userinfo(token=token)
        return dict(profile or {})

    @staticmethod
    def link(user: User, provider: str, profile: dict[str, Any]) -> LinkedIdentity:
        subject_key = oauth_ext.provider_settings(provider).get("subject_key", "sub")
        subject = profile.get(subject_key)
        if subject in (None, ""):
            raise ValidationError(user_msg="Provider profile is missing an account id")
        subject = str(subject)

        existing = LinkedIdentity.query.filter_by(provider=provider, provider_subject=subject).first()
        if existing is not None:
            if existing.user_id != user.id:
                raise IdentityConflictError(user_msg="This account is already linked to another user")
            return existing

        identity = LinkedIdentity(
            user_id=user.id,
            provider=provider,
            provider_subject=subject,
            email=profile.get("email"),
        )
        try:
            db.session.add(identity)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise IdentityConflictError(user_msg="This account is already linked to another user") from exc
        return identity
