"""
Credential primitives: password hashing, session tokens, one-time codes
and activation tokens.

Nothing here touches the store; callers pass in the values they loaded.
"""
import base64
import io
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import jwt
import pyotp
import qrcode
from pwdlib import PasswordHash
from pwdlib.exceptions import UnknownHashError
from pwdlib.hashers.bcrypt import BcryptHasher


@lru_cache()
def _password_hash(rounds: int) -> PasswordHash:
    return PasswordHash((BcryptHasher(rounds=rounds),))


def get_password_hash(password: str, rounds: int = 10) -> str:
    return _password_hash(rounds).hash(password)


@lru_cache()
def dummy_password_hash(rounds: int = 10) -> str:
    """Hash checked when no account matches, so unknown emails cost the same bcrypt work."""
    return get_password_hash(secrets.token_hex(16), rounds)


def verify_password(plain_password: str, hashed_password: Optional[str], rounds: int = 10) -> bool:
    if not hashed_password:
        return False
    try:
        return _password_hash(rounds).verify(plain_password, hashed_password)
    except UnknownHashError:
        return False


@dataclass(frozen=True)
class SessionIdentity:
    """Identity carried by a verified session token."""
    user_id: str
    email: str
    name: Optional[str] = None


def create_session_token(
    identity: SessionIdentity,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta = timedelta(hours=2),
) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": identity.user_id,
        "email": identity.email,
        "name": identity.name,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_session_token(token: str, secret: str, algorithm: str = "HS256") -> SessionIdentity:
    """
    Verify signature and expiration of a session token.

    Raises jwt.PyJWTError when the token is malformed, tampered with,
    expired or missing the identity claims.
    """
    payload = jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        options={"require": ["exp", "sub", "email"]},
    )
    return SessionIdentity(
        user_id=payload["sub"],
        email=payload["email"],
        name=payload.get("name"),
    )


def verify_totp(secret: Optional[str], code: Optional[str], valid_window: int = 1,
                for_time: Optional[datetime] = None) -> bool:
    """Check a 6-digit, 30-second TOTP code, tolerating `valid_window` steps of drift."""
    if not secret or not code:
        return False
    code = code.strip()
    if not code.isdigit():
        return False
    totp = pyotp.TOTP(secret)
    if for_time is None:
        return totp.verify(code, valid_window=valid_window)
    return totp.verify(code, for_time=for_time, valid_window=valid_window)


def generate_totp_secret() -> str:
    return pyotp.random_base32()


def provisioning_uri(secret: str, email: str, issuer: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=issuer)


def render_qr_data_uri(data: str) -> str:
    """Render `data` as a PNG QR code and return it as a data URI."""
    image = qrcode.make(data)
    buffer = io.BytesIO()
    image.save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def generate_reset_token() -> str:
    # 256 bits, hex encoded
    return secrets.token_hex(32)


def reset_token_expiry(minutes: int = 60, now: Optional[datetime] = None) -> datetime:
    return (now or datetime.now(timezone.utc)) + timedelta(minutes=minutes)
