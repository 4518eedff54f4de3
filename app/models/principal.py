import enum
import uuid
from datetime import datetime
from sqlalchemy import String, Enum, Boolean, DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column
from app.core.db import Base

class PrincipalType(str, enum.Enum):
    individual = "individual"   # identificador: codice fiscale / username
    business = "business"       # identificador: partita IVA

class Principal(Base):
    __tablename__ = "principals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    identifier: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    principal_type: Mapped[PrincipalType] = mapped_column(
        Enum(PrincipalType), default=PrincipalType.individual
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # 2FA: el secreto se guarda cifrado (ver app.core.vault) y solo
    # después de verificar un código contra el secreto pendiente
    totp_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    totp_secret: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # sube en cada activación/desactivación; los tokens viejos quedan desfasados
    totp_version: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
