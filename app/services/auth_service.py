"""
Login, activation / password-reset token lifecycle and password change.

Each operation is a short sequence of checks; any failing check raises
the matching HTTPException subclass before anything is written.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple
import logging

from app.core.config import Settings
from app.core.exceptions import (
    AccountNotFoundError,
    ExpiredLinkError,
    InvalidCredentialsError,
    InvalidLinkError,
    InvalidMfaError,
    WeakPasswordError,
)
from app.core.security import (
    SessionIdentity,
    create_session_token,
    dummy_password_hash,
    generate_reset_token,
    generate_totp_secret,
    get_password_hash,
    provisioning_uri,
    render_qr_data_uri,
    reset_token_expiry,
    verify_password,
    verify_totp,
)
from app.services.account_service import account_service

logger = logging.getLogger(__name__)


def _mfa_error(settings: Settings) -> InvalidMfaError:
    if settings.DISTINGUISH_MFA_FAILURE:
        return InvalidMfaError()
    return InvalidMfaError(message=InvalidCredentialsError().detail)


def _check_password_policy(password: str, settings: Settings):
    if len(password or "") < settings.PASSWORD_MIN_LENGTH:
        raise WeakPasswordError(settings.PASSWORD_MIN_LENGTH)


async def authenticate(
    email: str,
    password: str,
    totp_code: str,
    settings: Settings,
    session=None
) -> Tuple[Dict[str, Any], str]:
    """Check password and one-time code; return the account and a new session token."""
    user = await account_service.get_by_email(email, session=session)
    rounds = settings.PASSWORD_HASH_ROUNDS
    hashed = user.get("password_hash") if user else dummy_password_hash(rounds)
    password_ok = verify_password(password, hashed, rounds)
    if not user or not password_ok:
        logger.info("Login rejected: invalid credentials")
        raise InvalidCredentialsError()

    if not verify_totp(user.get("totp_secret"), totp_code, settings.TOTP_VALID_WINDOW):
        logger.info(f"Login rejected for user {user['_id']}: invalid MFA code")
        raise _mfa_error(settings)

    identity = SessionIdentity(
        user_id=str(user["_id"]),
        email=user["email"],
        name=user.get("name"),
    )
    token = create_session_token(
        identity,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    logger.info(f"User {identity.user_id} logged in")
    return user, token


async def request_password_reset(
    email: str,
    settings: Settings,
    session=None
) -> Optional[Tuple[Dict[str, Any], str]]:
    """
    Issue a reset token for a known email.

    Returns (account, token) when a token was issued, None otherwise. The
    caller must answer both cases identically.
    """
    user = await account_service.get_by_email(email, session=session)
    if not user:
        logger.info("Password reset requested for unknown email")
        return None

    token = generate_reset_token()
    expires_at = reset_token_expiry(settings.RESET_TOKEN_EXPIRE_MINUTES)
    await account_service.set_reset_token(user["_id"], token, expires_at, session=session)
    return user, token


async def _load_token_owner(token: str, session=None) -> Dict[str, Any]:
    user = await account_service.get_by_reset_token(token, session=session)
    if not user:
        raise InvalidLinkError()
    expires_at = user.get("reset_token_expires")
    if expires_at is None or datetime.now(timezone.utc) > expires_at:
        raise ExpiredLinkError()
    return user


async def _ensure_totp_secret(user: Dict[str, Any], token: str, session=None) -> str:
    """Give a pending account without a TOTP secret a new one and return the stored value."""
    await account_service.set_totp_secret(user["_id"], token, generate_totp_secret(), session=session)
    # Re-read: a concurrent request may have stored its secret first, or consumed the token
    stored = await account_service.get_by_reset_token(token, session=session)
    if not stored or not stored.get("totp_secret"):
        raise InvalidLinkError()
    return stored["totp_secret"]


async def inspect_reset_token(token: str, settings: Settings, session=None) -> Dict[str, Any]:
    """Validate a token and, while MFA is not set up, render the enrollment QR code."""
    user = await _load_token_owner(token, session=session)

    mfa_required = not user.get("mfa_setup_complete", False)
    qr_code = None
    if mfa_required:
        secret = user.get("totp_secret") or await _ensure_totp_secret(user, token, session=session)
        uri = provisioning_uri(secret, user["email"], settings.TOTP_ISSUER)
        qr_code = render_qr_data_uri(uri)

    return {
        "email": user["email"],
        "name": user.get("name"),
        "mfa_required": mfa_required,
        "qr_code": qr_code,
    }


async def finalize_reset_token(
    token: str,
    password: str,
    totp_code: Optional[str],
    settings: Settings,
    session=None
):
    """
    Consume a token: set the new password and invalidate the token.

    A one-time code is required while MFA setup is incomplete and is
    verified whenever one is supplied.
    """
    _check_password_policy(password, settings)
    user = await _load_token_owner(token, session=session)

    if totp_code or not user.get("mfa_setup_complete", False):
        if not verify_totp(user.get("totp_secret"), totp_code, settings.TOTP_VALID_WINDOW):
            raise _mfa_error(settings)

    password_hash = get_password_hash(password, settings.PASSWORD_HASH_ROUNDS)
    consumed = await account_service.consume_reset_token(user["_id"], token, password_hash, session=session)
    if not consumed:
        raise InvalidLinkError()


async def change_password(
    identity: SessionIdentity,
    totp_code: str,
    new_password: str,
    settings: Settings,
    session=None
):
    _check_password_policy(new_password, settings)

    user = await account_service.get_by_email(identity.email, session=session)
    if not user:
        raise AccountNotFoundError()

    if not verify_totp(user.get("totp_secret"), totp_code, settings.TOTP_VALID_WINDOW):
        raise _mfa_error(settings)

    password_hash = get_password_hash(new_password, settings.PASSWORD_HASH_ROUNDS)
    if not await account_service.update_password_hash(user["_id"], password_hash, session=session):
        raise AccountNotFoundError()
    logger.info(f"Password changed for user {user['_id']}")
