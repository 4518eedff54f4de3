from fastapi import APIRouter, BackgroundTasks, Depends

from app.api.deps import (
    CurrentSession, get_current_principal, get_notifier,
    get_two_factor_service, require_totp_verified,
)
from app.models.principal import Principal, PrincipalType
from app.schemas.auth import (
    LoginIn, LoginOut, PrincipalOut, RegisterIn, RegisterOut, SessionOut, SuccessOut,
    TOTPCodeIn, TOTPDisableIn, TOTPSetupOut, TOTPStatusOut, TOTPVerifyLoginIn,
)
from app.services.notifier import WebhookNotifier
from app.services.two_factor import EnrollmentTicket, TwoFactorService

router = APIRouter(prefix="/auth", tags=["auth"])


def _setup_out(ticket: EnrollmentTicket) -> TOTPSetupOut:
    return TOTPSetupOut(
        qr_code=ticket.qr_code,
        secret=ticket.secret,
        otpauth_url=ticket.otpauth_url,
        expires_at=ticket.expires_at,
    )

@router.post("/register", response_model=RegisterOut, status_code=201)
async def register(payload: RegisterIn, service: TwoFactorService = Depends(get_two_factor_service)):
    principal, token, ticket = await service.register(
        identifier=payload.identifier,
        password=payload.password,
        principal_type=PrincipalType(payload.principal_type.value),
        email=payload.email.lower() if payload.email else None,
        start_enrollment=payload.setup_totp,
    )
    return RegisterOut(
        principal=PrincipalOut.model_validate(principal),
        access_token=token,
        enrollment=_setup_out(ticket) if ticket else None,
    )

@router.post("/login", response_model=LoginOut)
async def login(payload: LoginIn, service: TwoFactorService = Depends(get_two_factor_service)):
    result = await service.login(payload.identifier, payload.password)
    # con 2FA activo no hay access_token todavía, solo el challenge_token
    return LoginOut(
        requires_totp=result.requires_totp,
        principal=PrincipalOut.model_validate(result.principal),
        access_token=result.access_token,
        challenge_token=result.challenge_token,
    )

@router.get("/me", response_model=PrincipalOut)
async def me(current: Principal = Depends(get_current_principal)):
    return current

# ---------- 2FA FLOW ----------
@router.post("/totp/setup", response_model=TOTPSetupOut)
async def totp_setup(
    current: Principal = Depends(get_current_principal),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    # si ya había un setup pendiente, el QR anterior deja de servir
    return _setup_out(service.start_enrollment(current))

@router.post("/totp/verify-setup", response_model=SessionOut)
async def totp_verify_setup(
    body: TOTPCodeIn,
    background: BackgroundTasks,
    current: Principal = Depends(get_current_principal),
    service: TwoFactorService = Depends(get_two_factor_service),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    token = await service.verify_enrollment(current, body.code)
    background.add_task(notifier.notify, "totp_enabled", current.id)
    return SessionOut(session_token=token)

@router.post("/totp/cancel-setup", response_model=SuccessOut)
async def totp_cancel_setup(
    current: Principal = Depends(get_current_principal),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    service.cancel_enrollment(current)
    return SuccessOut()

@router.post("/totp/verify-login", response_model=SessionOut)
async def totp_verify_login(
    body: TOTPVerifyLoginIn,
    service: TwoFactorService = Depends(get_two_factor_service),
):
    _, token = await service.verify_login(body.challenge_token, body.code)
    return SessionOut(session_token=token)

@router.get("/totp/status", response_model=TOTPStatusOut)
async def totp_status(current: Principal = Depends(get_current_principal)):
    return TOTPStatusOut(enabled=current.totp_enabled)

@router.post("/totp/disable", response_model=SuccessOut)
async def totp_disable(
    body: TOTPDisableIn,
    background: BackgroundTasks,
    session: CurrentSession = Depends(require_totp_verified),
    service: TwoFactorService = Depends(get_two_factor_service),
    notifier: WebhookNotifier = Depends(get_notifier),
):
    changed = await service.disable(session.principal, session.claims, code=body.code, password=body.password)
    if changed:
        background.add_task(notifier.notify, "totp_disabled", session.principal.id)
    return SuccessOut()
