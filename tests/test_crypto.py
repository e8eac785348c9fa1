"""Tests for AES-256-GCM encryption of stored secrets."""

from __future__ import annotations

import base64
import os

import pytest


def _key() -> str:
    return base64.b64encode(os.urandom(32)).decode()


def test_encrypt_decrypt():
    from founderfn.crypto import decrypt, encrypt

    key = _key()
    plaintext = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"
    token = encrypt(plaintext, key)
    assert token != plaintext
    assert decrypt(token, key) == plaintext


def test_encrypt_produces_different_ciphertexts():
    from founderfn.crypto import encrypt

    key = _key()
    # Same plaintext should produce different ciphertexts (random nonce)
    assert encrypt("test", key) != encrypt("test", key)


def test_missing_key_raises_even_when_settings_have_one(monkeypatch):
    from founderfn.config import Settings
    monkeypatch.setattr("founderfn.config.settings", Settings(_env_file=None, master_key=_key()))

    from founderfn.crypto import encrypt

    with pytest.raises(RuntimeError, match="MASTER_KEY not set"):
        encrypt("test", "")


def test_short_key_rejected():
    from founderfn.crypto import encrypt

    with pytest.raises(ValueError, match="32 bytes"):
        encrypt("test", base64.b64encode(b"short").decode())


def test_seal_roundtrip_and_passthrough():
    from founderfn.crypto import SEALED_PREFIX, seal, unseal

    key = _key()
    sealed = seal("SECRET", key)
    assert sealed.startswith(SEALED_PREFIX)
    assert unseal(sealed, key) == "SECRET"

    # No key configured: values are stored as-is, and old plain values still read back.
    assert seal("SECRET", "") == "SECRET"
    assert unseal("SECRET", key) == "SECRET"


def test_unseal_without_key_fails():
    from founderfn.crypto import seal, unseal

    sealed = seal("SECRET", _key())
    with pytest.raises(RuntimeError):
        unseal(sealed, "")
