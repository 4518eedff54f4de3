from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from enum import Enum

class PrincipalKind(str, Enum):
    individual = "individual"
    business = "business"

class RegisterIn(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=255)   # codice fiscale / P.IVA
    password: str = Field(..., min_length=8)
    principal_type: PrincipalKind = PrincipalKind.individual
    email: EmailStr | None = None
    setup_totp: bool = True   # arrancar el enrolamiento en el mismo request

class LoginIn(BaseModel):
    identifier: str
    password: str

class PrincipalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    identifier: str
    principal_type: PrincipalKind
    email: EmailStr | None = None
    is_active: bool
    totp_enabled: bool

# --- 2FA ---
class TOTPSetupOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    qr_code: str = Field(alias="qrCode")   # data:image/png;base64,...
    secret: str
    otpauth_url: str
    expires_at: datetime

class RegisterOut(BaseModel):
    principal: PrincipalOut
    access_token: str
    token_type: str = "bearer"
    enrollment: TOTPSetupOut | None = None

class LoginOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    requires_totp: bool = Field(alias="requiresTOTP")
    principal: PrincipalOut
    access_token: str | None = None
    challenge_token: str | None = None
    token_type: str = "bearer"

class TOTPCodeIn(BaseModel):
    code: str

class TOTPVerifyLoginIn(BaseModel):
    challenge_token: str
    code: str

class TOTPDisableIn(BaseModel):
    code: str | None = None
    password: str | None = None

class SessionOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    session_token: str = Field(alias="sessionToken")
    token_type: str = "bearer"

class TOTPStatusOut(BaseModel):
    enabled: bool

class SuccessOut(BaseModel):
    success: bool = True
