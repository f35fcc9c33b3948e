"""JSON endpoints for password changes, provider linking and step-up verification.

Password change serves two kinds of caller:

* accounts created with email/password must confirm their current password
  before a new one is stored;
* accounts created through an OAuth provider skip that check and get their
  first password added, keeping the provider connected.

Both this endpoint and provider linking are sensitive actions. When the
device's verification grace period has lapsed, the caller is either
challenged for a second factor or, without one, the action is logged as
verified and allowed through.
"""
from __future__ import annotations

from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
from authlib.common.errors import AuthlibBaseError
from flask import current_app, jsonify, redirect, request
from flask_login import login_required
from pydantic import ValidationError as PydanticValidationError

from accountguard_auth import auth_api_bp, otp_service
from accountguard_auth.alerts import alert_enabled, send_email_alert
from accountguard_auth.devices import get_device_session_id
from accountguard_auth.events import log_account_event
from accountguard_auth.schemas import (
    AddPasswordRequest,
    PasswordChangeRequest,
    SocialProviderRequest,
    VerificationRequest,
    first_error_message,
)
from accountguard_auth.services import AccountService, IdentityConflictError, IdentityService
from accountguard_auth.verification import (
    get_user_verification_methods,
    has_grace_period_expired,
    load_device_session,
    mark_device_verified,
    verify_factor_code,
)
from accountguard_ext import oauth as oauth_ext
from accountguard_ext.email import EmailDeliveryError, send_email
from accountguard_ext.errors import AuthError, BackendError, RateLimitError, ValidationError
from accountguard_ext.logging import log_error, log_info, log_warn
from accountguard_ext.security import auth_rate_limit
from accountguard_models.account_event import (
    PASSWORD_CHANGED,
    SENSITIVE_ACTION_VERIFIED,
    SOCIAL_PROVIDER_CONNECTED,
)

NO_DEVICE_SESSION = "No device session found"
TWO_FACTOR_REQUIRED = "Two-factor verification required"


def _origin() -> str:
    return request.host_url.rstrip("/")


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError(user_msg="Invalid input")
    return payload


def _validate(schema, payload: dict[str, Any], *, component: str, **context: Any):
    try:
        return schema.model_validate(payload, context=context or None)
    except PydanticValidationError as exc:
        log_warn(
            "validation failed",
            component=component,
            context={"issues": [error.get("type") for error in exc.errors()]},
        )
        raise ValidationError(user_msg=first_error_message(exc)) from exc


@auth_api_bp.route("/change-password", methods=["POST"])
@auth_rate_limit("AUTH")
@login_required
def change_password():
    """Change the caller's password, or add one to an OAuth-only account."""
    component = "auth.change_password"
    user = AccountService.current_account()

    schema = PasswordChangeRequest if user.has_password else AddPasswordRequest
    data = _validate(
        schema,
        _json_body(),
        component=component,
        min_length=int(current_app.config.get("PASSWORD_MIN_LENGTH", 8)),
    )

    if user.has_password and not user.verify_password(data.current_password):
        log_warn("current password rejected", component=component, user_id=user.id)
        raise ValidationError(user_msg="Current password is incorrect")

    device_session_id = get_device_session_id(request)
    if not device_session_id:
        log_error("no device session found in request", component=component, user_id=user.id)
        raise ValidationError(user_msg=NO_DEVICE_SESSION)

    if has_grace_period_expired(user, device_session_id):
        verification = get_user_verification_methods(user)
        if verification.has_2fa:
            log_info("two-factor challenge issued", component=component, user_id=user.id)
            return jsonify(
                {
                    "requiresTwoFactor": True,
                    "factorId": verification.factors[0]["factorId"],
                    "availableMethods": verification.factors,
                    "newPassword": data.new_password,
                }
            )
        log_account_event(
            user_id=user.id,
            event_type=SENSITIVE_ACTION_VERIFIED,
            device_session_id=device_session_id,
            include_device=True,
            metadata={
                "action": "change_password",
                "category": "info",
                "description": "Password change request verified",
            },
        )

    AccountService.update_password(user, data.new_password)
    AccountService.mark_has_password(user)

    log_account_event(
        user_id=user.id,
        event_type=PASSWORD_CHANGED,
        device_session_id=device_session_id,
        include_device=True,
        metadata={"category": "warning", "description": "Account password was changed"},
    )

    if alert_enabled("password", "alert_on_change"):
        send_email_alert(
            user=user,
            origin=_origin(),
            title="Your password was changed",
            message=(
                "Your account password was just changed. If this wasn't you, "
                "please secure your account immediately."
            ),
        )

    log_info("password changed", component=component, user_id=user.id)
    return jsonify({})


@auth_api_bp.route("/social/connect", methods=["POST"])
@auth_rate_limit("AUTH")
@login_required
def connect_social_provider():
    """Start linking an OAuth provider to the caller's account."""
    component = "auth.social_connect"
    user = AccountService.current_account()

    data = _validate(
        SocialProviderRequest,
        _json_body(),
        component=component,
        providers=oauth_ext.provider_names(),
    )
    provider = data.provider

    device_session_id = get_device_session_id(request)
    if not device_session_id:
        raise AuthError(user_msg=NO_DEVICE_SESSION)

    if has_grace_period_expired(user, device_session_id):
        verification = get_user_verification_methods(user)
        if verification.has_2fa:
            return jsonify({"requiresVerification": True, "availableMethods": verification.factors})
        available = verification.basic_methods()
        if not available:
            raise ValidationError(user_msg="No verification methods available")
        return jsonify({"requiresVerification": True, "availableMethods": available})

    try:
        url = IdentityService.build_link_url(
            user,
            provider,
            origin=_origin(),
            next_url=request.headers.get("Referer"),
        )
    except ValidationError as exc:
        log_error("failed to link identity", component=component, user_id=user.id, context={"reason": exc.user_msg})
        raise

    log_info("social provider link started", component=component, user_id=user.id, context={"provider": provider})

    log_account_event(
        user_id=user.id,
        event_type=SENSITIVE_ACTION_VERIFIED,
        device_session_id=device_session_id,
        include_device=True,
        metadata={
            "action": "connect_provider",
            "category": "info",
            "description": f"Social provider connection verified: {provider}",
        },
    )
    log_account_event(
        user_id=user.id,
        event_type=SOCIAL_PROVIDER_CONNECTED,
        metadata={
            "provider": provider,
            "category": "info",
            "description": f"Connected {provider} account",
        },
    )

    if alert_enabled("social_providers", "alert_on_connect"):
        provider_title = provider[:1].upper() + provider[1:]
        send_email_alert(
            user=user,
            origin=_origin(),
            title=f"{provider_title} account connected",
            message=(
                f"A {provider_title} account was connected to your account. If this wasn't you, "
                "please secure your account immediately."
            ),
        )

    return jsonify({"url": url})


@auth_api_bp.route("/verify", methods=["POST"])
@auth_rate_limit("VERIFY")
@login_required
def verify_step_up():
    """Complete a verification challenge and restart the device's grace period."""
    component = "auth.verify"
    user = AccountService.current_account()
    data = _validate(VerificationRequest, _json_body(), component=component)

    device_session = load_device_session(user, get_device_session_id(request))
    if device_session is None:
        raise AuthError(user_msg=NO_DEVICE_SESSION)

    verification = get_user_verification_methods(user)
    if verification.has_2fa and data.method != "totp":
        raise ValidationError(user_msg=TWO_FACTOR_REQUIRED)

    if data.method == "totp":
        if not verify_factor_code(user, data.factor_id, data.code):
            log_warn("second factor rejected", component=component, user_id=user.id)
            raise ValidationError(user_msg="Invalid verification code")
    elif data.method == "password":
        if not user.has_password:
            raise ValidationError(user_msg="Password verification is not available")
        if not user.verify_password(data.password):
            log_warn("step-up password rejected", component=component, user_id=user.id)
            raise ValidationError(user_msg="Incorrect password")
    else:
        try:
            issued = otp_service.verify_otp(user, candidate=data.code)
        except otp_service.OtpError as exc:
            log_warn("emailed code rejected", component=component, user_id=user.id, context={"reason": type(exc).__name__})
            raise ValidationError(user_msg=exc.message) from exc
        if issued.get("device_session_id") != device_session.id:
            log_warn("emailed code used from another device", component=component, user_id=user.id)
            raise ValidationError(user_msg="Invalid verification code")

    mark_device_verified(device_session)
    log_account_event(
        user_id=user.id,
        event_type=SENSITIVE_ACTION_VERIFIED,
        device_session_id=device_session.id,
        include_device=True,
        metadata={
            "action": "step_up",
            "method": data.method,
            "category": "info",
            "description": "Device verified for sensitive actions",
        },
    )
    return jsonify({})


@auth_api_bp.route("/verify/email", methods=["POST"])
@auth_rate_limit("OTP_SEND")
@login_required
def send_verification_code():
    """Email a one-time code the caller can exchange at ``/verify``."""
    component = "auth.verify_email"
    user = AccountService.current_account()

    device_session = load_device_session(user, get_device_session_id(request))
    if device_session is None:
        raise AuthError(user_msg=NO_DEVICE_SESSION)
    if get_user_verification_methods(user).has_2fa:
        raise ValidationError(user_msg=TWO_FACTOR_REQUIRED)

    try:
        code, record = otp_service.issue_otp(user, metadata={"device_session_id": device_session.id})
    except otp_service.OtpThrottleError as exc:
        raise RateLimitError(user_msg=exc.message) from exc

    app_name = current_app.config.get("APP_NAME", "AccountGuard")
    try:
        send_email(
            subject=f"Your {app_name} verification code",
            recipients=[user.email],
            template="verification_code",
            context={
                "app_name": app_name,
                "name": user.display_name,
                "otp": code,
                "expiry_minutes": int(current_app.config.get("OTP_EXPIRY_MINUTES", 10)),
                "support_email": current_app.config.get("EMAIL_FROM"),
            },
        )
    except EmailDeliveryError as exc:
        log_error("verification email failed", component=component, exc_info=True, user_id=user.id)
        raise BackendError(user_msg="Failed to send verification code") from exc

    log_info("verification code sent", component=component, user_id=user.id, context={"otp_id": record.id})
    return jsonify({})


def _safe_next(target: str | None) -> str:
    """Same-origin redirect target, falling back to ``/``."""
    if not target:
        return "/"
    parts = urlsplit(target)
    if parts.scheme not in ("", "http", "https"):
        return "/"
    if parts.netloc and parts.netloc != request.host:
        return "/"
    if not parts.netloc and not target.startswith("/"):
        return "/"
    if target.startswith("//"):
        return "/"
    return target


def _with_error(target: str, error: str) -> str:
    parts = urlsplit(target)
    query = [(key, value) for key, value in parse_qsl(parts.query) if key != "error"]
    query.append(("error", error))
    return urlunsplit(parts._replace(query=urlencode(query)))


@auth_api_bp.route("/callback", methods=["GET"])
@login_required
def provider_callback():
    """Finish provider linking started by ``/social/connect``."""
    component = "auth.callback"
    user = AccountService.current_account()
    provider = (request.args.get("provider") or "").strip().lower()
    next_url = _safe_next(request.args.get("next"))

    if provider not in oauth_ext.provider_names() or request.args.get("is_provider_connection") != "true":
        log_warn("unsupported provider callback", component=component, user_id=user.id, context={"provider": provider})
        return redirect(_with_error(next_url, "provider_connection_failed"))

    try:
        profile = IdentityService.fetch_profile(provider)
        identity = IdentityService.link(user, provider, profile)
    except IdentityConflictError:
        log_warn("identity already linked elsewhere", component=component, user_id=user.id, context={"provider": provider})
        return redirect(_with_error(next_url, "identity_already_linked"))
    except (AuthlibBaseError, ValidationError, requests.RequestException) as exc:
        log_error(
            "provider connection failed",
            component=component,
            user_id=user.id,
            context={"provider": provider, "reason": str(exc)},
        )
        return redirect(_with_error(next_url, "provider_connection_failed"))

    log_info("social provider linked", component=component, user_id=user.id, context={"provider": provider, "identity_id": identity.id})
    return redirect(next_url)
