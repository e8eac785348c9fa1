"""AES-256-GCM encryption for TOTP secrets at rest."""

from __future__ import annotations

import base64
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

_NONCE_SIZE = 12  # 96-bit nonce for AES-GCM

# Base32 secrets never contain ':', so the prefix marks sealed values unambiguously.
SEALED_PREFIX = "gcm:"


def _get_key(master_key: str) -> bytes:
    if not master_key:
        raise RuntimeError("MASTER_KEY not set")
    key = base64.b64decode(master_key)
    if len(key) != 32:
        raise ValueError("MASTER_KEY must be 32 bytes (base64-encoded)")
    return key


def encrypt(plaintext: str, master_key: str) -> str:
    """Encrypt a string. Returns base64(nonce + ciphertext)."""
    key = _get_key(master_key)
    nonce = os.urandom(_NONCE_SIZE)
    ct = AESGCM(key).encrypt(nonce, plaintext.encode(), None)
    return base64.b64encode(nonce + ct).decode()


def decrypt(token: str, master_key: str) -> str:
    """Decrypt a base64(nonce + ciphertext) token back to plaintext."""
    key = _get_key(master_key)
    raw = base64.b64decode(token)
    nonce, ct = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
    return AESGCM(key).decrypt(nonce, ct, None).decode()


def seal(value: str, master_key: str) -> str:
    """Encrypt `value` for storage when a key is configured, else pass it through."""
    if not master_key:
        return value
    return SEALED_PREFIX + encrypt(value, master_key)


def unseal(stored: str, master_key: str) -> str:
    """Inverse of seal(). Plain values written before a key was set are returned as-is."""
    if not stored.startswith(SEALED_PREFIX):
        return stored
    return decrypt(stored[len(SEALED_PREFIX):], master_key)
