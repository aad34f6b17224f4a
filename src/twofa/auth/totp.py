"""TOTP (Time-based One-Time Password) code engine.

Codes follow RFC 4226 (HOTP) and RFC 6238 (TOTP) with HMAC-SHA1, so they
match every compliant authenticator app. pyotp is used for secret generation
and provisioning URIs; the code path itself is computed here so digit
clamping and error reporting stay under our control.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import math
import struct
import time
from datetime import datetime

import pyotp

from twofa.errors import DecodeError, EngineError

DEFAULT_PERIOD = 30
DEFAULT_DIGITS = 6
MAX_DIGITS = 8  # 10**9 would exceed the 31-bit truncated value


def decode_secret(text: str) -> bytes:
    """Decode a case-insensitive Base32 key, with or without padding."""
    key = text.strip()
    if not key:
        raise DecodeError("empty key")
    # str.upper() maps some non-ASCII letters into the alphabet ("ß" -> "SS")
    if not key.isascii():
        raise DecodeError("invalid key: non-ASCII character")
    key = key.upper()
    if "=" not in key:
        key += "=" * (-len(key) % 8)
    try:
        raw = base64.b32decode(key)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"invalid key: {exc}") from exc
    if not raw:
        raise DecodeError("empty key")
    return raw


def _clamp_digits(digits: int) -> int:
    return max(1, min(digits, MAX_DIGITS))


def hotp(secret: bytes, counter: int, digits: int = DEFAULT_DIGITS) -> str:
    """Counter-based code per RFC 4226, zero-padded to ``digits`` (clamped to 1..8)."""
    digits = _clamp_digits(digits)
    try:
        msg = struct.pack(">Q", counter)
        sum_ = hmac.new(secret, msg, hashlib.sha1).digest()
    except (struct.error, TypeError, ValueError) as exc:
        raise EngineError(f"cannot compute code for counter {counter!r}: {exc}") from exc

    offset = sum_[-1] & 0x0F
    truncated = (
        (sum_[offset] & 0x7F) << 24
        | sum_[offset + 1] << 16
        | sum_[offset + 2] << 8
        | sum_[offset + 3]
    )
    return str(truncated % 10**digits).zfill(digits)


def unix_time(at: datetime | float | None = None) -> float:
    if at is None:
        return time.time()
    if isinstance(at, datetime):
        return at.timestamp()
    return float(at)


def time_counter(at: datetime | float | None = None, period: int = DEFAULT_PERIOD) -> int:
    """Time step index: ``floor(unix_time / period)``."""
    return math.floor(unix_time(at) / period)


def totp(
    secret: bytes,
    at: datetime | float | None = None,
    digits: int = DEFAULT_DIGITS,
    period: int = DEFAULT_PERIOD,
) -> str:
    """Get the TOTP code for a secret at ``at`` (now when omitted)."""
    return hotp(secret, time_counter(at, period), digits)


def spaced_code(code: str) -> str:
    """Group a code as ``6 8 125305`` so 6, 7 and 8 digit views read off one line."""
    if len(code) <= 6:
        return code
    head = code[:-6]
    return " ".join(head) + " " + code[-6:]


def generate_secret() -> str:
    """Generate a new TOTP secret (base32-encoded, 32 chars)."""
    return pyotp.random_base32()


def provisioning_uri(
    secret: str,
    name: str,
    issuer: str | None = None,
    digits: int = DEFAULT_DIGITS,
) -> str:
    """Get the otpauth:// URI for a secret."""
    return pyotp.TOTP(secret, digits=digits).provisioning_uri(name=name, issuer_name=issuer)
