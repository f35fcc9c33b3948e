"""Account pages."""
from __future__ import annotations

from flask import make_response, render_template, request, url_for
from flask_login import login_required

from accountguard_auth.services import AccountService
from accountguard_auth.devices import device_metadata, get_device_session_id, set_device_session_cookie
from accountguard_auth.verification import load_device_session
from accountguard_ext.logging import log_info
from accountguard_models.device_session import DeviceSession
from accountguard_web import web_bp
from accountguard_web.forms import AddPasswordForm, ChangePasswordForm


@web_bp.route("/account/password", methods=["GET"])
@login_required
def password_settings():
    user = AccountService.current_account()
    form = ChangePasswordForm() if user.has_password else AddPasswordForm()
    response = make_response(
        render_template(
            "account/change_password.html",
            form=form,
            has_password=user.has_password,
            endpoint=url_for("accountguard_auth.change_password"),
            fallback_url=request.referrer or "/",
        )
    )

    # Browsers that reach the page without a device cookie get one, unverified.
    if load_device_session(user, get_device_session_id(request)) is None:
        info = device_metadata(request)
        device_session = DeviceSession.issue(
            user.id,
            device_name=info["device_name"],
            browser=info["browser"],
            os=info["os"],
            ip_address=info["ip_address"],
        )
        set_device_session_cookie(response, device_session.id)
        log_info("device session issued", component="web.account", user_id=user.id, context={"device_session_id": device_session.id})
    return response
