"""TOTP (Time-based One-Time Password) primitives for 2FA.

Uses pyotp for the RFC 6238 arithmetic: HMAC-SHA1 over the 30-second
time step, dynamic truncation to a 6-digit code.
"""

from __future__ import annotations

import time
from urllib.parse import quote

import pyotp
import pyotp.utils

INTERVAL = 30
DIGITS = 6
SECRET_LENGTH = 32  # 160 bits, the smallest length pyotp accepts

QR_SERVICE_URL = "https://api.qrserver.com/v1/create-qr-code/?size=200x200&data="


def generate_secret() -> str:
    """Generate a new TOTP secret (base32-encoded, drawn from the OS CSPRNG)."""
    return pyotp.random_base32(length=SECRET_LENGTH)


def time_step(for_time: float) -> int:
    return int(for_time) // INTERVAL


def code_at(secret: str, for_time: float) -> str:
    """Get the code for the time step containing `for_time` (Unix seconds)."""
    return pyotp.TOTP(secret).generate_otp(time_step(for_time))


def current_code(secret: str) -> str:
    """Get the current TOTP code for a secret."""
    return code_at(secret, time.time())


def is_well_formed(code: str | None) -> bool:
    return bool(code) and len(code) == DIGITS and code.isascii() and code.isdigit()


def matching_step(secret: str, code: str, for_time: float, valid_window: int = 1) -> int | None:
    """Return the time step `code` belongs to, searching +-valid_window steps.

    None when the code is malformed or matches no step in the window.
    """
    if not is_well_formed(code):
        return None
    totp = pyotp.TOTP(secret)
    now = time_step(for_time)
    for offset in sorted(range(-valid_window, valid_window + 1), key=abs):
        step = now + offset
        if step < 0:
            continue
        if pyotp.utils.strings_equal(code, totp.generate_otp(step)):
            return step
    return None


def verify_code(secret: str, code: str, for_time: float | None = None, valid_window: int = 1) -> bool:
    """Verify a TOTP code against a secret (allows +-valid_window steps)."""
    at = time.time() if for_time is None else for_time
    return matching_step(secret, code, at, valid_window) is not None


def provisioning_uri(secret: str, account_name: str, issuer: str) -> str:
    """Get the otpauth:// URI for QR code enrollment."""
    return pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=issuer)


def qr_code_url(uri: str) -> str:
    """Image URL of a QR code encoding `uri`."""
    return QR_SERVICE_URL + quote(uri, safe="")
