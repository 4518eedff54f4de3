"""AES-256-GCM para guardar los secretos TOTP cifrados en la base.

Formato almacenado: ``hex(nonce):hex(ciphertext+tag)``.

La clave es configuración del proceso (TOTP_ENCRYPTION_KEY). Rotarla deja
inutilizables todos los secretos guardados salvo que se re-cifren antes.
"""
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.core.errors import DecryptionError

NONCE_SIZE = 12  # 96-bit nonce para GCM
KEY_SIZE = 32


class SecretVault:
    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise RuntimeError(f"TOTP encryption key must be {KEY_SIZE} bytes, got {len(key)}")
        self._aead = AESGCM(key)

    @classmethod
    def from_hex(cls, hex_key: str | None) -> "SecretVault":
        if not hex_key:
            raise RuntimeError("TOTP_ENCRYPTION_KEY not set")
        try:
            key = bytes.fromhex(hex_key)
        except ValueError as exc:
            raise RuntimeError("TOTP_ENCRYPTION_KEY must be hex-encoded") from exc
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        ct = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return f"{nonce.hex()}:{ct.hex()}"

    def decrypt(self, token: str) -> str:
        try:
            nonce_hex, ct_hex = token.split(":")
            nonce, ct = bytes.fromhex(nonce_hex), bytes.fromhex(ct_hex)
            if len(nonce) != NONCE_SIZE:
                raise ValueError("bad nonce length")
            return self._aead.decrypt(nonce, ct, None).decode("utf-8")
        except (InvalidTag, ValueError, AttributeError, binascii.Error) as exc:
            # UnicodeDecodeError es subclase de ValueError
            raise DecryptionError("Stored TOTP secret could not be decrypted") from exc
