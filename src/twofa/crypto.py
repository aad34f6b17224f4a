"""AES-256-GCM encryption for TOTP secrets kept in the account registry."""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from twofa.config import settings
from twofa.errors import RegistryError

_NONCE_SIZE = 12  # 96-bit nonce for AES-GCM


def has_key() -> bool:
    return bool(settings.master_key)


def _get_key() -> bytes:
    raw = settings.master_key
    if not raw:
        raise RegistryError("TWOFA_MASTER_KEY not set")
    try:
        key = base64.b64decode(raw, validate=True)
    except binascii.Error as exc:
        raise RegistryError("TWOFA_MASTER_KEY is not valid base64") from exc
    if len(key) != 32:
        raise RegistryError("TWOFA_MASTER_KEY must be 32 bytes (base64-encoded)")
    return key


def encrypt(plaintext: str) -> str:
    """Encrypt a string. Returns base64(nonce + ciphertext)."""
    key = _get_key()
    nonce = os.urandom(_NONCE_SIZE)
    ct = AESGCM(key).encrypt(nonce, plaintext.encode(), None)
    return base64.b64encode(nonce + ct).decode()


def decrypt(token: str) -> str:
    """Decrypt a base64(nonce + ciphertext) token back to plaintext."""
    key = _get_key()
    try:
        raw = base64.b64decode(token, validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise RegistryError("stored secret is not valid base64") from exc
    if len(raw) <= _NONCE_SIZE:
        raise RegistryError("stored secret is truncated")
    nonce, ct = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
    try:
        return AESGCM(key).decrypt(nonce, ct, None).decode()
    except InvalidTag as exc:
        raise RegistryError("cannot decrypt stored secret (wrong TWOFA_MASTER_KEY?)") from exc
