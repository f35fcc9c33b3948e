"""SQLAlchemy models exposed as a cohesive package."""
from __future__ import annotations

from accountguard_models.account_event import AccountEvent
from accountguard_models.device_session import DeviceSession
from accountguard_models.identity import LinkedIdentity
from accountguard_models.mfa_factor import MfaFactor
from accountguard_models.otp import OneTimePasscode
from accountguard_models.user import User

__all__ = [
    "AccountEvent",
    "DeviceSession",
    "LinkedIdentity",
    "MfaFactor",
    "OneTimePasscode",
    "User",
]
