from fastapi import APIRouter, Depends

from app.api.deps import CurrentSession, get_current_session
from app.schemas.auth import PrincipalOut

router = APIRouter(prefix="/user", tags=["user"])

# get_current_session ya rechaza tokens sin 2FA si el principal lo tiene activo
@router.get("/profile", response_model=PrincipalOut)
async def profile(session: CurrentSession = Depends(get_current_session)):
    return session.principal
