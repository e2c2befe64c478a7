import base64
from datetime import datetime, timedelta, timezone
from urllib.parse import unquote

import jwt
import pyotp
import pytest

from app.core.security import (
    SessionIdentity,
    create_session_token,
    decode_session_token,
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


def test_password_hash_roundtrip():
    hashed = get_password_hash("s3cret-pass", rounds=4)
    assert hashed.startswith("$2b$04$")
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong-pass", hashed)


def test_password_hash_default_cost_factor():
    assert get_password_hash("s3cret-pass").startswith("$2b$10$")


def test_verify_password_rejects_missing_or_unknown_hash():
    assert not verify_password("anything", None)
    assert not verify_password("anything", "")
    assert not verify_password("anything", "plain-text-not-a-hash")


def test_totp_accepts_current_and_adjacent_steps():
    secret = pyotp.random_base32()
    totp = pyotp.TOTP(secret)
    now = datetime(2026, 1, 1, 12, 0, 15)

    assert verify_totp(secret, totp.at(now), for_time=now)
    assert verify_totp(secret, totp.at(now - timedelta(seconds=30)), for_time=now)
    assert verify_totp(secret, totp.at(now + timedelta(seconds=30)), for_time=now)


def test_totp_rejects_codes_two_steps_away():
    secret = pyotp.random_base32()
    totp = pyotp.TOTP(secret)
    now = datetime(2026, 1, 1, 12, 0, 15)
    current = {totp.at(now + timedelta(seconds=30 * i)) for i in (-1, 0, 1)}

    for offset in (-60, 60, -90):
        code = totp.at(now + timedelta(seconds=offset))
        if code in current:
            continue
        assert not verify_totp(secret, code, for_time=now)


def test_totp_rejects_malformed_input():
    secret = pyotp.random_base32()
    assert not verify_totp(secret, None)
    assert not verify_totp(secret, "")
    assert not verify_totp(secret, "abcdef")
    assert not verify_totp(None, "123456")


def test_session_token_roundtrip():
    identity = SessionIdentity(user_id="abc123", email="u@x.com", name="User")
    token = create_session_token(identity, "secret")

    assert decode_session_token(token, "secret") == identity


def test_session_token_expires_after_window():
    identity = SessionIdentity(user_id="abc123", email="u@x.com")
    token = create_session_token(identity, "secret", expires_delta=timedelta(seconds=-1))

    with pytest.raises(jwt.ExpiredSignatureError):
        decode_session_token(token, "secret")


def test_session_token_rejects_other_signing_key():
    identity = SessionIdentity(user_id="abc123", email="u@x.com")
    token = create_session_token(identity, "secret")

    with pytest.raises(jwt.PyJWTError):
        decode_session_token(token, "another-secret")


def test_session_token_default_lifetime_is_two_hours():
    identity = SessionIdentity(user_id="abc123", email="u@x.com")
    token = create_session_token(identity, "secret")
    claims = jwt.decode(token, "secret", algorithms=["HS256"])

    assert claims["exp"] - claims["iat"] == 2 * 60 * 60


def test_reset_token_is_256_bit_hex():
    token = generate_reset_token()
    assert len(token) == 64
    int(token, 16)
    assert generate_reset_token() != token


def test_reset_token_expiry_defaults_to_one_hour():
    now = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert reset_token_expiry(now=now) == now + timedelta(hours=1)


def test_reset_token_expiry_is_timezone_aware():
    assert reset_token_expiry().tzinfo is timezone.utc


def test_dummy_password_hash_is_a_real_bcrypt_hash():
    hashed = dummy_password_hash(rounds=4)

    assert hashed.startswith("$2b$04$")
    assert dummy_password_hash(rounds=4) == hashed
    assert not verify_password("", hashed, rounds=4)


def test_generated_totp_secret_verifies_its_own_codes():
    secret = generate_totp_secret()

    assert verify_totp(secret, pyotp.TOTP(secret).now())


def test_provisioning_uri_carries_issuer_and_email():
    uri = provisioning_uri("JBSWY3DPEHPK3PXP", "u@x.com", "ASYNCX")

    assert unquote(uri).startswith("otpauth://totp/ASYNCX:u@x.com?")
    assert "secret=JBSWY3DPEHPK3PXP" in uri
    assert "issuer=ASYNCX" in uri


def test_qr_code_is_png_data_uri():
    data_uri = render_qr_data_uri("otpauth://totp/ASYNCX:u%40x.com?secret=JBSWY3DPEHPK3PXP")
    prefix = "data:image/png;base64,"

    assert data_uri.startswith(prefix)
    assert base64.b64decode(data_uri[len(prefix):]).startswith(b"\x89PNG")
