"""Forms for the account password page."""
from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import PasswordField, SubmitField
from wtforms.validators import DataRequired, EqualTo, Length

from accountguard_web.widgets import RevealablePasswordInput


class AddPasswordForm(FlaskForm):
    """Add a first password to an account created through a social provider."""

    new_password = PasswordField(
        "New password",
        widget=RevealablePasswordInput(),
        validators=[
            DataRequired(),
            Length(min=8, max=128, message="Password must be at least 8 characters long."),
        ],
        render_kw={"autocomplete": "new-password"},
    )
    confirm_password = PasswordField(
        "Confirm password",
        widget=RevealablePasswordInput(),
        validators=[DataRequired(), EqualTo("new_password", message="Passwords must match.")],
        render_kw={"autocomplete": "new-password"},
    )
    submit = SubmitField("Add password")


class ChangePasswordForm(AddPasswordForm):
    """Change the password of an account that already has one."""

    current_password = PasswordField(
        "Current password",
        widget=RevealablePasswordInput(),
        validators=[DataRequired()],
        render_kw={"autocomplete": "current-password"},
    )
    submit = SubmitField("Change password")
