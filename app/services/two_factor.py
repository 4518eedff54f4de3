"""
Flujo de registro, login y enrolamiento TOTP.

Estados de un principal: ``totp_enabled`` False/True. Los pasos intermedios
(enrolamiento pendiente, desafío de login) viven solo en los ExpiringStore
y vencen solos; el secreto recién pasa a la base, cifrado, cuando el usuario
demostró que lo cargó en su app con un código válido.
"""
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache

from app.core import totp
from app.core.config import Settings
from app.core.errors import (
    AuthenticationError, ConflictError, ForbiddenError, InvalidCodeError,
    NotFoundError, StateError, TooManyAttemptsError, ValidationError,
)
from app.core.security import (
    CHALLENGE_TOKEN, SessionClaims, create_access_token, create_challenge_token,
    decode_token, hash_password, verify_password,
)
from app.core.vault import SecretVault
from app.models.principal import Principal, PrincipalType
from app.services.pending import (
    Clock, ExpiringStore, LoginLockout, PendingEnrollment, PendingLoginChallenge,
)
from app.services.principal_store import PrincipalRepository

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid identifier or password"
INVALID_CODE = "Invalid verification code"


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # para que un identificador inexistente cueste lo mismo que un password malo
    return hash_password(uuid.uuid4().hex)


@dataclass
class EnrollmentTicket:
    secret: str
    otpauth_url: str
    qr_code: str
    expires_at: datetime


@dataclass
class LoginResult:
    principal: Principal
    requires_totp: bool
    access_token: str | None = None
    challenge_token: str | None = None


class TwoFactorService:
    def __init__(
        self,
        repository: PrincipalRepository,
        vault: SecretVault,
        enrollments: ExpiringStore[PendingEnrollment],
        challenges: ExpiringStore[PendingLoginChallenge],
        *,
        issuer: str = "PrimeGenesis",
        max_attempts: int = 5,
        enrollment_ttl: int = 600,
        challenge_ttl: int = 300,
        lockouts: ExpiringStore[LoginLockout] | None = None,
        lockout_seconds: int = 900,
        clock: Clock = time.time,
    ):
        self.repository = repository
        self.vault = vault
        self.enrollments = enrollments
        self.challenges = challenges
        self.lockouts = lockouts if lockouts is not None else ExpiringStore(clock=clock)
        self.issuer = issuer
        self.max_attempts = max_attempts
        self.enrollment_ttl = enrollment_ttl
        self.challenge_ttl = challenge_ttl
        self.lockout_seconds = lockout_seconds
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, repository: PrincipalRepository, vault: SecretVault,
                      enrollments: ExpiringStore[PendingEnrollment],
                      challenges: ExpiringStore[PendingLoginChallenge],
                      lockouts: ExpiringStore[LoginLockout]) -> "TwoFactorService":
        return cls(
            repository, vault, enrollments, challenges,
            issuer=settings.TOTP_ISSUER,
            max_attempts=settings.TOTP_MAX_ATTEMPTS,
            enrollment_ttl=settings.TOTP_ENROLLMENT_TTL_SECONDS,
            challenge_ttl=settings.TOTP_CHALLENGE_TTL_SECONDS,
            lockouts=lockouts,
            lockout_seconds=settings.TOTP_LOCKOUT_SECONDS,
            clock=enrollments.clock,
        )

    # ---------- registro ----------
    async def register(
        self,
        identifier: str,
        password: str,
        principal_type: PrincipalType = PrincipalType.individual,
        email: str | None = None,
        start_enrollment: bool = True,
    ) -> tuple[Principal, str, EnrollmentTicket | None]:
        identifier = identifier.strip()
        if not identifier:
            raise ValidationError("Identifier is required")
        if await self.repository.find_by_identifier(identifier):
            raise ConflictError()

        principal = Principal(
            id=str(uuid.uuid4()),
            identifier=identifier,
            principal_type=principal_type,
            email=email,
            hashed_password=hash_password(password),
            is_active=True,
            totp_enabled=False,
            totp_secret=None,
            totp_version=0,
        )
        principal = await self.repository.put(principal)
        logger.info("principal %s registered (%s)", principal.id, principal_type.value)

        ticket = self.start_enrollment(principal) if start_enrollment else None
        token = create_access_token(principal.id, principal.identifier, totp_verified=False,
                                    totp_version=principal.totp_version)
        return principal, token, ticket

    # ---------- enrolamiento ----------
    def start_enrollment(self, principal: Principal) -> EnrollmentTicket:
        if principal.totp_enabled:
            raise StateError("TOTP is already enabled, disable it first")

        now = self.clock()
        secret = totp.generate_secret()
        # un segundo setup invalida el QR anterior
        pending = self.enrollments.put(PendingEnrollment(
            principal_id=principal.id,
            secret=secret,
            created_at=now,
            expires_at=now + self.enrollment_ttl,
        ))
        uri = totp.provisioning_uri(secret, label=principal.identifier, issuer=self.issuer)
        logger.info("TOTP enrollment started for %s", principal.id)
        return EnrollmentTicket(
            secret=secret,
            otpauth_url=uri,
            qr_code=totp.qr_data_uri(uri),
            expires_at=datetime.fromtimestamp(pending.expires_at, tz=timezone.utc),
        )

    def cancel_enrollment(self, principal: Principal) -> None:
        self.enrollments.discard(principal.id)
        logger.info("TOTP enrollment cancelled for %s", principal.id)

    async def verify_enrollment(self, principal: Principal, code: str) -> str:
        _require_code_format(code)
        pending = self.enrollments.get(principal.id)
        if pending is None:
            raise StateError("No pending TOTP setup, start the setup again")
        self._check_attempts(self.enrollments, pending)

        if not totp.validate(pending.secret, code, for_time=self.clock()):
            self._record_failure(self.enrollments, pending, "enrollment")
            raise InvalidCodeError(INVALID_CODE)

        principal.totp_secret = self.vault.encrypt(pending.secret)
        principal.totp_enabled = True
        # los tokens emitidos antes de este punto dejan de valer
        principal.totp_version = (principal.totp_version or 0) + 1
        principal = await self.repository.put(principal)
        self.enrollments.discard(principal.id)
        logger.info("TOTP enabled for %s", principal.id)
        return create_access_token(principal.id, principal.identifier, totp_verified=True,
                                   totp_version=principal.totp_version)

    # ---------- login ----------
    async def login(self, identifier: str, password: str) -> LoginResult:
        principal = await self.repository.find_by_identifier(identifier.strip())
        if principal is None:
            verify_password(password, _dummy_hash())
            raise AuthenticationError(INVALID_CREDENTIALS)
        # cualquier intento de login nuevo, exitoso o no, mata el desafío anterior
        self.challenges.discard(principal.id)
        if not verify_password(password, principal.hashed_password):
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not principal.is_active:
            raise ForbiddenError("Principal is inactive")

        if not principal.totp_enabled:
            token = create_access_token(principal.id, principal.identifier, totp_verified=True,
                                        totp_version=principal.totp_version)
            return LoginResult(principal=principal, requires_totp=False, access_token=token)

        self._check_lockout(principal.id)
        now = self.clock()
        challenge = self.challenges.put(PendingLoginChallenge(
            principal_id=principal.id,
            challenge_id=uuid.uuid4().hex,
            created_at=now,
            expires_at=now + self.challenge_ttl,
        ))
        logger.info("TOTP challenge issued for %s", principal.id)
        return LoginResult(
            principal=principal,
            requires_totp=True,
            challenge_token=create_challenge_token(principal.id, challenge.challenge_id),
        )

    async def verify_login(self, challenge_token: str, code: str) -> tuple[Principal, str]:
        _require_code_format(code)
        try:
            claims = decode_token(challenge_token, CHALLENGE_TOKEN)
        except AuthenticationError:
            raise StateError("Login challenge expired or invalid, please log in again")

        challenge = self.challenges.get(claims.principal_id)
        if challenge is None or challenge.challenge_id != claims.challenge_id:
            raise StateError("Login challenge expired or invalid, please log in again")
        self._check_lockout(challenge.principal_id)

        principal = await self.repository.get(challenge.principal_id)
        if principal is None:
            self.challenges.discard(challenge.principal_id)
            raise NotFoundError()
        if not principal.totp_enabled or not principal.totp_secret:
            self.challenges.discard(principal.id)
            raise StateError("TOTP is not enabled, please log in again")

        secret = self.vault.decrypt(principal.totp_secret)
        if not totp.validate(secret, code, for_time=self.clock()):
            self._record_login_failure(principal.id)
            raise AuthenticationError(INVALID_CODE)

        self.challenges.discard(principal.id)
        self.lockouts.discard(principal.id)
        logger.info("TOTP login verified for %s", principal.id)
        token = create_access_token(principal.id, principal.identifier, totp_verified=True,
                                    totp_version=principal.totp_version)
        return principal, token

    # ---------- desactivar ----------
    async def disable(
        self,
        principal: Principal,
        claims: SessionClaims,
        code: str | None = None,
        password: str | None = None,
    ) -> bool:
        """
        Requiere sesión verificada y además reconfirmar con un código TOTP
        o con el password. Devuelve False si ya estaba deshabilitado.
        """
        if not claims.totp_verified:
            raise ForbiddenError("TOTP verification required", requires_totp=True)
        if not principal.totp_enabled:
            return False
        if not claims.attests_totp(principal.totp_version):
            raise ForbiddenError("TOTP verification required", requires_totp=True)

        if code:
            _require_code_format(code)
            secret = self.vault.decrypt(principal.totp_secret or "")
            if not totp.validate(secret, code, for_time=self.clock()):
                raise AuthenticationError(INVALID_CODE)
        elif password:
            if not verify_password(password, principal.hashed_password):
                raise AuthenticationError(INVALID_CREDENTIALS)
        else:
            raise ValidationError("Confirm with a TOTP code or your password")

        principal.totp_secret = None
        principal.totp_enabled = False
        principal.totp_version = (principal.totp_version or 0) + 1
        await self.repository.put(principal)
        self.enrollments.discard(principal.id)
        self.challenges.discard(principal.id)
        self.lockouts.discard(principal.id)
        logger.info("TOTP disabled for %s", principal.id)
        return True

    # ---------- reintentos ----------
    def _check_lockout(self, principal_id: str) -> None:
        lockout = self.lockouts.get(principal_id)
        if lockout is not None and lockout.failures >= self.max_attempts:
            raise TooManyAttemptsError()

    def _record_login_failure(self, principal_id: str) -> None:
        expires_at = self.clock() + self.lockout_seconds
        lockout = self.lockouts.get(principal_id)
        if lockout is None:
            lockout = self.lockouts.put(LoginLockout(principal_id=principal_id, expires_at=expires_at))
        lockout.failures += 1
        lockout.expires_at = expires_at
        logger.warning("invalid TOTP code during login for %s (%d/%d)",
                       principal_id, lockout.failures, self.max_attempts)
        if lockout.failures >= self.max_attempts:
            self.challenges.discard(principal_id)
            logger.warning("TOTP login locked out for %s", principal_id)

    def _check_attempts(self, store: ExpiringStore, pending) -> None:
        if pending.attempts >= self.max_attempts:
            store.discard(pending.principal_id)
            raise StateError("Too many attempts, please start again")

    def _record_failure(self, store: ExpiringStore, pending, stage: str) -> None:
        pending.attempts += 1
        logger.warning("invalid TOTP code during %s for %s (%d/%d)",
                       stage, pending.principal_id, pending.attempts, self.max_attempts)
        if pending.attempts >= self.max_attempts:
            store.discard(pending.principal_id)
            logger.warning("TOTP %s locked out for %s", stage, pending.principal_id)


def _require_code_format(code: object) -> None:
    if not totp.is_well_formed_code(code):
        raise ValidationError(f"Code must be exactly {totp.DIGITS} digits")
