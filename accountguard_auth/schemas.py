"""Pydantic schemas for the account security endpoints."""
from __future__ import annotations

import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128

_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"\d")

# Labels used when a required field is missing entirely.
_FIELD_LABELS = {
    "currentPassword": "Current password",
    "newPassword": "New password",
    "provider": "Provider",
    "method": "Verification method",
}


def _check_password_policy(value: str, min_length: int = PASSWORD_MIN_LENGTH) -> str:
    if len(value) < min_length:
        raise PydanticCustomError(
            "password_too_short",
            "Password must be at least {min_length} characters",
            {"min_length": min_length},
        )
    if len(value) > PASSWORD_MAX_LENGTH:
        raise PydanticCustomError(
            "password_too_long",
            "Password must be at most {max_length} characters",
            {"max_length": PASSWORD_MAX_LENGTH},
        )
    if not _LETTER.search(value) or not _DIGIT.search(value):
        raise PydanticCustomError(
            "password_too_weak",
            "Password must contain at least one letter and one number",
        )
    return value


class AddPasswordRequest(BaseModel):
    """Payload for OAuth-only accounts adding their first password."""

    new_password: str = Field(alias="newPassword")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("new_password")
    @classmethod
    def enforce_policy(cls, value: str, info: ValidationInfo) -> str:
        min_length = (info.context or {}).get("min_length", PASSWORD_MIN_LENGTH)
        return _check_password_policy(value, min_length)


class PasswordChangeRequest(AddPasswordRequest):
    """Payload for accounts that already have a password."""

    current_password: str = Field(alias="currentPassword")

    @field_validator("current_password")
    @classmethod
    def require_current(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("current_password_required", "Current password is required")
        return value

    @model_validator(mode="after")
    def ensure_new_differs(self) -> "PasswordChangeRequest":
        if self.new_password == self.current_password:
            raise PydanticCustomError(
                "password_unchanged",
                "New password must be different from the current password",
            )
        return self


class SocialProviderRequest(BaseModel):
    provider: str

    model_config = ConfigDict(extra="ignore")

    @field_validator("provider")
    @classmethod
    def known_provider(cls, value: str, info: ValidationInfo) -> str:
        normalized = value.strip().lower()
        allowed = (info.context or {}).get("providers")
        if not normalized or (allowed is not None and normalized not in allowed):
            raise PydanticCustomError("invalid_provider", "Invalid provider")
        return normalized


class VerificationRequest(BaseModel):
    """Completion of a step-up challenge."""

    method: Literal["totp", "password", "email"]
    factor_id: Optional[str] = Field(default=None, alias="factorId")
    code: Optional[str] = None
    password: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("code")
    @classmethod
    def normalise_code(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.replace(" ", "").strip()

    @model_validator(mode="after")
    def require_credentials(self) -> "VerificationRequest":
        if self.method == "totp" and (not self.factor_id or not self.code):
            raise PydanticCustomError("totp_incomplete", "Factor and code are required")
        if self.method == "email" and not self.code:
            raise PydanticCustomError("code_required", "Verification code is required")
        if self.method == "password" and not self.password:
            raise PydanticCustomError("password_required", "Password is required")
        return self


def first_error_message(exc: PydanticValidationError) -> str:
    """Caller-facing message for the first validation issue."""
    errors = exc.errors()
    if not errors:
        return "Invalid input"
    first: dict[str, Any] = errors[0]
    loc = first.get("loc") or ()
    field = str(loc[0]) if loc else ""
    if first.get("type") == "missing":
        return f"{_FIELD_LABELS.get(field, field or 'Field')} is required"
    if first.get("type") == "literal_error" and field == "method":
        return "Invalid verification method"
    if first.get("type") in {"string_type", "model_type", "model_attributes_type"}:
        return "Invalid input"
    return first.get("msg") or "Invalid input"
