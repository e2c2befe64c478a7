from pydantic import BaseModel, Field, field_validator
from typing import Optional


class LoginRequest(BaseModel):
    """Password + one-time code login."""
    email: str
    password: str
    totp_code: str = Field(..., alias="totp")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    class Config:
        populate_by_name = True


class UserSummary(BaseModel):
    """Minimal profile returned alongside a session token."""
    name: Optional[str] = None
    monitoring_status: Optional[str] = None
    device_count: int = 0


class LoginResponse(BaseModel):
    token: str
    user: UserSummary


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class SetupCheckResponse(BaseModel):
    """Result of inspecting an activation / reset token."""
    email: str
    name: Optional[str] = None
    mfa_required: bool
    qr_code: Optional[str] = None  # PNG data URI, only while MFA is not set up


class SetupFinalizeRequest(BaseModel):
    token: str
    password: str
    totp_code: Optional[str] = Field(None, alias="totp")

    class Config:
        populate_by_name = True


class CompleteResetRequest(SetupFinalizeRequest):
    pass


class ChangePasswordRequest(BaseModel):
    totp_code: str = Field(..., alias="totp")
    new_password: str

    class Config:
        populate_by_name = True


class UserProfile(BaseModel):
    """Profile block of the dashboard."""
    name: Optional[str] = None
    email: str
    monitoring_status: Optional[str] = None
    device_count: int = 0
    identity_document: Optional[str] = None
    address: Optional[str] = None
