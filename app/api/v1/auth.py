from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import jwt
import logging

from app.core.config import Settings, get_settings
from app.core.exceptions import AuthenticationError
from app.core.security import SessionIdentity, decode_session_token
from app.db.mongo import get_db_session
from app.schemas.user import (
    ChangePasswordRequest,
    CompleteResetRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    SetupCheckResponse,
    SetupFinalizeRequest,
    UserSummary,
)
from app.services import auth_service
from app.services.notifier import NotificationService, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])

security = HTTPBearer(auto_error=False)

FORGOT_PASSWORD_ACK = "If this email is registered, you will receive a link to set your password."


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings)
) -> SessionIdentity:
    """
    Verify the bearer session token and return the identity it carries.

    Purely cryptographic: signature and expiration only, no store access.
    """
    if not credentials:
        raise AuthenticationError("Authentication required")

    try:
        return decode_session_token(
            credentials.credentials,
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.PyJWTError as e:
        logger.info(f"Rejected session token: {e}")
        raise AuthenticationError("Invalid authentication token")


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    settings: Settings = Depends(get_settings),
    session=Depends(get_db_session)
):
    """Authenticate with email, password and a one-time code."""
    user, token = await auth_service.authenticate(
        request.email,
        request.password,
        request.totp_code,
        settings,
        session=session
    )
    return LoginResponse(
        token=token,
        user=UserSummary(
            name=user.get("name"),
            monitoring_status=user.get("monitoring_status"),
            device_count=user.get("device_count") or 0
        )
    )


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
    notifier: NotificationService = Depends(get_notifier),
    session=Depends(get_db_session)
):
    """
    Issue an activation / reset link.

    The response is identical whether or not the email belongs to an account.
    """
    issued = await auth_service.request_password_reset(request.email, settings, session=session)
    if issued:
        user, token = issued
        background_tasks.add_task(notifier.send_activation_email, user["email"], user.get("name"), token)
    return MessageResponse(message=FORGOT_PASSWORD_ACK)


@router.get("/setup-check", response_model=SetupCheckResponse)
async def setup_check(
    token: str = Query(...),
    settings: Settings = Depends(get_settings),
    session=Depends(get_db_session)
):
    """Validate a link token and return the MFA enrollment QR code when needed."""
    result = await auth_service.inspect_reset_token(token, settings, session=session)
    return SetupCheckResponse(**result)


@router.post("/setup-finalize", response_model=MessageResponse)
async def setup_finalize(
    request: SetupFinalizeRequest,
    settings: Settings = Depends(get_settings),
    session=Depends(get_db_session)
):
    """Activate the account: set the password and confirm MFA enrollment."""
    await auth_service.finalize_reset_token(
        request.token,
        request.password,
        request.totp_code,
        settings,
        session=session
    )
    return MessageResponse(message="Account activated. You can now log in.")


@router.post("/complete-reset", response_model=MessageResponse)
async def complete_reset(
    request: CompleteResetRequest,
    settings: Settings = Depends(get_settings),
    session=Depends(get_db_session)
):
    """Set a new password from a reset link."""
    await auth_service.finalize_reset_token(
        request.token,
        request.password,
        request.totp_code,
        settings,
        session=session
    )
    return MessageResponse(message="Password updated. You can now log in.")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    identity: SessionIdentity = Depends(get_current_identity),
    settings: Settings = Depends(get_settings),
    session=Depends(get_db_session)
):
    """Change the password of the logged-in user. Requires a fresh one-time code."""
    await auth_service.change_password(
        identity,
        request.totp_code,
        request.new_password,
        settings,
        session=session
    )
    return MessageResponse(message="Password changed successfully.")
