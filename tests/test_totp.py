"""Tests for the TOTP codec, secret generation and provisioning."""

import base64
import re

import pyotp
import pytest

from app.core import totp

# RFC 6238 apéndice B (SHA-1), recortado a 6 dígitos
RFC_SECRET = base64.b32encode(b"12345678901234567890").decode()


@pytest.mark.parametrize(
    "for_time, expected",
    [(59, "287082"), (1111111109, "081804"), (1234567890, "005924"), (2000000000, "279037")],
)
def test_compute_matches_rfc_vectors(for_time, expected):
    assert totp.compute(RFC_SECRET, for_time) == expected


def test_validate_accepts_computed_code():
    secret = totp.generate_secret()
    t = 1_700_000_000
    assert totp.validate(secret, totp.compute(secret, t), for_time=t)


def test_validate_window_is_one_step_each_side():
    t = 1111111109
    assert totp.validate(RFC_SECRET, totp.compute(RFC_SECRET, t - 30), for_time=t)
    assert totp.validate(RFC_SECRET, totp.compute(RFC_SECRET, t + 30), for_time=t)
    assert not totp.validate(RFC_SECRET, totp.compute(RFC_SECRET, t - 60), for_time=t)
    assert not totp.validate(RFC_SECRET, totp.compute(RFC_SECRET, t + 60), for_time=t)


def test_codes_differ_between_periods():
    assert totp.compute(RFC_SECRET, 1111111109) != totp.compute(RFC_SECRET, 1111111109 + 30)


def test_wrong_code_returns_false():
    assert totp.validate(RFC_SECRET, "000000", for_time=59) is False


@pytest.mark.parametrize("code", ["12345", "1234567", "12a456", " 12345", "", None, 123456, "١٢٣٤٥٦"])
def test_malformed_code_rejected_without_hmac(monkeypatch, code):
    def boom(*args, **kwargs):
        raise AssertionError("HMAC computed for a malformed code")

    monkeypatch.setattr(pyotp.TOTP, "at", boom)
    monkeypatch.setattr(pyotp.TOTP, "verify", boom)
    assert totp.validate(RFC_SECRET, code, for_time=59) is False


def test_malformed_secret_raises():
    with pytest.raises(ValueError):
        totp.compute("not base32!!", 59)
    with pytest.raises(ValueError):
        totp.validate("not base32!!", "123456", for_time=59)


def test_generate_secret_is_160_bit_base32():
    a, b = totp.generate_secret(), totp.generate_secret()
    assert re.fullmatch(r"[A-Z2-7]{32}", a)
    assert len(base64.b32decode(a)) == 20
    assert a != b


def test_provisioning_uri_format():
    uri = totp.provisioning_uri("JBSWY3DPEHPK3PXP", label="mario rossi", issuer="PrimeGenesis")
    assert uri == (
        "otpauth://totp/PrimeGenesis:mario%20rossi"
        "?secret=JBSWY3DPEHPK3PXP&issuer=PrimeGenesis&algorithm=SHA1&digits=6&period=30"
    )


def test_provisioning_uri_encodes_label():
    uri = totp.provisioning_uri("JBSWY3DPEHPK3PXP", label="a:b/c?d", issuer="Prime Genesis")
    assert uri.startswith("otpauth://totp/Prime%20Genesis:a%3Ab%2Fc%3Fd?")
    assert "issuer=Prime%20Genesis" in uri


def test_qr_data_uri_is_png():
    data_uri = totp.qr_data_uri("otpauth://totp/PrimeGenesis:alice?secret=JBSWY3DPEHPK3PXP")
    prefix = "data:image/png;base64,"
    assert data_uri.startswith(prefix)
    assert base64.b64decode(data_uri[len(prefix):]).startswith(b"\x89PNG")
