"""Turn registry entries into Accounts.

Entries are either ``otpauth://totp/<label>?secret=<base32>&issuer=<issuer>``
provisioning URLs or a bare Base32 key typed at the prompt.
"""

from __future__ import annotations

import hashlib
import logging

import pyotp

from twofa.auth.totp import decode_secret
from twofa.config import settings
from twofa.errors import DecodeError, InvalidAccountNameError, NotFoundError
from twofa.models import Account
from twofa.registry import AccountRegistry

logger = logging.getLogger(__name__)

_SCHEME = "otpauth://"


def validate_name(name: str) -> str:
    # ":" separates issuer and account in provisioning URL labels
    if not name or ":" in name or any(c.isspace() for c in name):
        raise InvalidAccountNameError(name)
    return name


def parse_secret_url(name: str, text: str, *, digits: int | None = None) -> Account:
    """Parse a provisioning URL or bare key into an Account.

    ``name`` wins over the URL label when given. ``digits`` only applies to
    bare keys; URLs carry their own.
    """
    text = text.strip()
    if not text.lower().startswith(_SCHEME):
        return Account(
            name=name,
            secret=decode_secret(text),
            digits=digits or settings.default_digits,
            period=settings.period,
        )

    try:
        otp = pyotp.parse_uri(text)
    except ValueError as exc:
        raise DecodeError(f"invalid provisioning URL: {exc}") from exc
    if not isinstance(otp, pyotp.TOTP):
        raise DecodeError("only time-based (totp) URLs are supported")
    if getattr(otp, "digest", None) not in (None, hashlib.sha1):
        raise DecodeError("only SHA1 provisioning URLs are supported")
    if otp.interval != settings.period:
        logger.debug("Ignoring period=%s from URL, using %s", otp.interval, settings.period)

    return Account(
        name=name or otp.name or "",
        secret=decode_secret(otp.secret),
        issuer=otp.issuer or None,
        digits=otp.digits,
        period=settings.period,
    )


def resolve_account(registry: AccountRegistry, name: str) -> Account:
    url, found = registry.get_secret_url(name)
    if not found:
        raise NotFoundError(name)
    return parse_secret_url(name, url)
