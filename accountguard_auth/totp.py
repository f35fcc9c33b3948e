"""Time-based one-time passwords (RFC 6238, HMAC-SHA1, 6 digits, 30 s step)."""
from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import struct
import time
from urllib.parse import quote, urlencode

DIGITS = 6
STEP_SECONDS = 30


def generate_secret(length: int = 20) -> str:
    """Random base32 secret without padding, as authenticator apps expect."""
    return base64.b32encode(secrets.token_bytes(length)).decode("ascii").rstrip("=")


def _decode_secret(secret: str) -> bytes:
    normalized = secret.strip().replace(" ", "").upper()
    padding = "=" * (-len(normalized) % 8)
    return base64.b32decode(normalized + padding, casefold=True)


def hotp(secret: str, counter: int, digits: int = DIGITS) -> str:
    key = _decode_secret(secret)
    digest = hmac.new(key, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    binary = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return str(binary % (10 ** digits)).zfill(digits)


def totp(secret: str, *, at: float | None = None, step: int = STEP_SECONDS, digits: int = DIGITS) -> str:
    timestamp = time.time() if at is None else at
    return hotp(secret, int(timestamp // step), digits)


def verify_totp(
    secret: str,
    code: str,
    *,
    at: float | None = None,
    window: int = 1,
    step: int = STEP_SECONDS,
) -> bool:
    """Accept ``code`` if it matches any step within ``window`` steps of ``at``."""
    candidate = (code or "").strip()
    if len(candidate) != DIGITS or not candidate.isdigit():
        return False
    try:
        _decode_secret(secret)
    except (ValueError, TypeError):
        return False
    timestamp = time.time() if at is None else at
    counter = int(timestamp // step)
    for offset in range(-window, window + 1):
        if counter + offset < 0:
            continue
        if hmac.compare_digest(hotp(secret, counter + offset), candidate):
            return True
    return False


def provisioning_uri(secret: str, *, account: str, issuer: str) -> str:
    """``otpauth://`` URI for QR enrolment."""
    label = quote(f"{issuer}:{account}")
    query = urlencode({"secret": secret, "issuer": issuer, "digits": DIGITS, "period": STEP_SECONDS})
    return f"otpauth://totp/{label}?{query}"
