"""Tests for AES-256-GCM encryption of stored TOTP secrets."""

import os

import pytest

from app.core.errors import DecryptionError
from app.core.vault import SecretVault


def test_encrypt_decrypt(vault):
    secret = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"
    token = vault.encrypt(secret)
    assert secret not in token
    assert vault.decrypt(token) == secret


def test_token_is_nonce_and_ciphertext_in_hex(vault):
    nonce_hex, ct_hex = vault.encrypt("ABC").split(":")
    assert len(bytes.fromhex(nonce_hex)) == 12
    # 3 bytes de texto + 16 de tag
    assert len(bytes.fromhex(ct_hex)) == 19


def test_encrypt_produces_different_ciphertexts(vault):
    # mismo plaintext, nonce distinto
    assert vault.encrypt("test") != vault.encrypt("test")


def test_wrong_key_fails(vault):
    token = vault.encrypt("JBSWY3DPEHPK3PXP")
    other = SecretVault(os.urandom(32))
    with pytest.raises(DecryptionError):
        other.decrypt(token)


def test_tampered_ciphertext_fails(vault):
    nonce_hex, ct_hex = vault.encrypt("JBSWY3DPEHPK3PXP").split(":")
    flipped = f"{int(ct_hex[:2], 16) ^ 0x01:02x}" + ct_hex[2:]
    with pytest.raises(DecryptionError):
        vault.decrypt(f"{nonce_hex}:{flipped}")


@pytest.mark.parametrize("token", ["", "nope", "zz:zz", "00:00", "a:b:c"])
def test_malformed_token_fails(vault, token):
    with pytest.raises(DecryptionError):
        vault.decrypt(token)


@pytest.mark.parametrize("hex_key", [None, "", "not-hex", "00" * 16])
def test_invalid_key_aborts(hex_key):
    with pytest.raises(RuntimeError):
        SecretVault.from_hex(hex_key)


def test_from_hex_accepts_32_byte_key():
    vault = SecretVault.from_hex("ab" * 32)
    assert vault.decrypt(vault.encrypt("x")) == "x"
