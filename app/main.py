import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.auth import router as auth_router
from app.api.v1.user import router as user_router
from app.core.config import settings
from app.core.db import dispose_engine
from app.core.errors import AuthError, DecryptionError
from app.core.vault import SecretVault
from app.services.notifier import WebhookNotifier
from app.services.pending import ExpiringStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # sin clave válida no arrancamos: es configuración, no un error por request
    app.state.vault = SecretVault.from_hex(settings.TOTP_ENCRYPTION_KEY)
    app.state.enrollments = ExpiringStore()
    app.state.challenges = ExpiringStore()
    app.state.lockouts = ExpiringStore()
    app.state.notifier = WebhookNotifier(
        settings.NOTIFY_WEBHOOK_URL,
        max_retries=settings.NOTIFY_MAX_RETRIES,
        timeout=settings.NOTIFY_TIMEOUT_SECONDS,
    )
    logger.info("%s started", settings.APP_NAME)
    yield
    await dispose_engine()


app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    detail = exc.detail
    if isinstance(exc, DecryptionError):
        # solo al log del server; el cliente recibe un 500 genérico
        logger.error("%s on %s %s", exc.detail, request.method, request.url.path)
        detail = DecryptionError.default_detail
    content = {"detail": detail, "error": type(exc).__name__}
    if getattr(exc, "requires_totp", False):
        content["requiresTOTP"] = True
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors()), "error": "ValidationError"},
    )


app.include_router(auth_router)
app.include_router(user_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
