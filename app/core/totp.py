"""TOTP helpers (RFC 6238 sobre HOTP/RFC 4226) para el 2FA.

Parámetros fijos para compatibilidad con Google Authenticator / Authy:
SHA-1, 6 dígitos, período de 30 segundos.
"""
import base64
import binascii
import time
from io import BytesIO
from urllib.parse import quote, urlencode

import pyotp
import qrcode

DIGITS = 6
PERIOD = 30
ALGORITHM = "SHA1"
SECRET_LENGTH = 32   # 32 chars base32 = 160 bits


def generate_secret() -> str:
    return pyotp.random_base32(length=SECRET_LENGTH)


def _totp(secret: str) -> pyotp.TOTP:
    totp = pyotp.TOTP(secret, digits=DIGITS, interval=PERIOD)
    try:
        # pyotp decodifica de forma perezosa; forzamos el decode para fallar temprano
        if not totp.byte_secret():
            raise ValueError("empty secret")
    except (binascii.Error, ValueError, TypeError, AttributeError) as exc:
        raise ValueError("Malformed TOTP secret") from exc
    return totp


def is_well_formed_code(code: object) -> bool:
    return (
        isinstance(code, str)
        and len(code) == DIGITS
        and code.isascii()
        and code.isdigit()
    )


def compute(secret: str, for_time: float | None = None) -> str:
    """Código para el paso de tiempo que contiene ``for_time`` (default: ahora)."""
    totp = _totp(secret)
    return totp.at(time.time() if for_time is None else for_time)


def validate(secret: str, code: object, for_time: float | None = None, window: int = 1) -> bool:
    """
    Acepta el código del contador actual o de ``window`` pasos a cada lado.
    Un código mal formado se rechaza sin calcular ningún HMAC.
    """
    if not is_well_formed_code(code):
        return False
    totp = _totp(secret)
    # pyotp compara con hmac.compare_digest
    return bool(totp.verify(code, for_time=time.time() if for_time is None else for_time,
                            valid_window=window))


def provisioning_uri(secret: str, label: str, issuer: str) -> str:
    params = {
        "secret": secret,
        "issuer": issuer,
        "algorithm": ALGORITHM,
        "digits": DIGITS,
        "period": PERIOD,
    }
    path = f"{quote(issuer, safe='')}:{quote(label, safe='')}"
    return f"otpauth://totp/{path}?{urlencode(params, quote_via=quote)}"


def qr_data_uri(text: str) -> str:
    img = qrcode.make(text)          # -> PIL.Image.Image
    buf = BytesIO()
    img.save(buf, "PNG")
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
