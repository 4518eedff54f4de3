from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.core.errors import AuthenticationError, ForbiddenError
from app.core.security import SessionClaims, decode_token
from app.models.principal import Principal
from app.services.notifier import WebhookNotifier
from app.services.principal_store import PrincipalRepository, SqlPrincipalRepository
from app.services.two_factor import TwoFactorService


bearer = HTTPBearer(auto_error=False)

def get_principal_repository(db: AsyncSession = Depends(get_db)) -> PrincipalRepository:
    return SqlPrincipalRepository(db)

def get_two_factor_service(
    request: Request,
    repository: PrincipalRepository = Depends(get_principal_repository),
) -> TwoFactorService:
    state = request.app.state
    return TwoFactorService.from_settings(
        settings, repository, state.vault, state.enrollments, state.challenges, state.lockouts
    )

def get_notifier(request: Request) -> WebhookNotifier:
    return request.app.state.notifier


@dataclass
class CurrentSession:
    principal: Principal
    claims: SessionClaims


async def get_current_session(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    repository: PrincipalRepository = Depends(get_principal_repository),
) -> CurrentSession:
    """
    Decodifica el JWT del header Authorization y carga el principal.

    Si el principal tiene 2FA activo y el token no lo acredita, o lo acredita
    para otra versión del 2FA (emitido antes de activarlo), se rechaza con
    403 y requiresTOTP.
    """
    if creds is None or creds.scheme.lower() != "bearer":
        raise AuthenticationError("Authentication token required")

    claims = decode_token(creds.credentials)
    principal = await repository.get(claims.principal_id)
    if not principal:
        raise AuthenticationError("Principal not found")

    if not principal.is_active:
        raise ForbiddenError("Principal is inactive")

    if principal.totp_enabled and not claims.attests_totp(principal.totp_version):
        raise ForbiddenError("TOTP verification required", requires_totp=True)

    return CurrentSession(principal=principal, claims=claims)

async def get_current_principal(session: CurrentSession = Depends(get_current_session)) -> Principal:
    return session.principal

# --- sesión con 2FA completado (el claim tiene que decirlo explícitamente) ---
async def require_totp_verified(session: CurrentSession = Depends(get_current_session)) -> CurrentSession:
    if not session.claims.totp_verified:
        raise ForbiddenError("TOTP verification required", requires_totp=True)
    return session
