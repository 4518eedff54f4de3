from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext

from jose import jwt, JWTError
from app.core.config import settings
from app.core.errors import AuthenticationError

ACCESS_TOKEN = "access"
CHALLENGE_TOKEN = "totp_challenge"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


@dataclass(frozen=True)
class SessionClaims:
    principal_id: str
    identifier: str | None
    totp_verified: bool
    totp_version: int | None
    token_type: str
    issued_at: datetime
    expires_at: datetime
    challenge_id: str | None = None

    def attests_totp(self, totp_version: int) -> bool:
        # verificado, y para el 2FA vigente (no uno anterior a activarlo)
        return self.totp_verified and self.totp_version == totp_version


def _encode(subject: str, token_type: str, extra: dict, expires_minutes: int) -> str:
    now = datetime.now(tz=timezone.utc)
    to_encode = {"sub": subject, "typ": token_type, "iat": now}
    to_encode.update(extra)
    to_encode["exp"] = now + timedelta(minutes=expires_minutes)
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def create_access_token(
        principal_id: str,
        identifier: str,
        totp_verified: bool,
        totp_version: int = 0,
        expires_minutes: int | None = None
        ) -> str:
    return _encode(
        principal_id,
        ACCESS_TOKEN,
        {"identifier": identifier, "totp_verified": totp_verified, "tv": totp_version},
        expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )

def create_challenge_token(principal_id: str, challenge_id: str) -> str:
    # solo sirve para /auth/totp/verify-login, no autentica nada más
    return _encode(
        principal_id,
        CHALLENGE_TOKEN,
        {"cid": challenge_id},
        settings.CHALLENGE_TOKEN_EXPIRE_MINUTES,
    )

def decode_token(token: str, expected_type: str = ACCESS_TOKEN) -> SessionClaims:
    """
    Valida firma, expiración y tipo del JWT. Cualquier problema es un 401 genérico.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub or payload.get("typ") != expected_type:
        raise AuthenticationError("Invalid token payload")

    return SessionClaims(
        principal_id=sub,
        identifier=payload.get("identifier"),
        totp_verified=payload.get("totp_verified") is True,
        totp_version=payload["tv"] if isinstance(payload.get("tv"), int) else None,
        token_type=expected_type,
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        challenge_id=payload.get("cid"),
    )
