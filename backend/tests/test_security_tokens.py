from datetime import timedelta

from jose import jwt

from app.config import settings
from app.core.security import (
    create_access_token,
    decode_access_token,
    decode_token,
    generate_opaque_token,
    get_password_hash,
    verify_password,
)


def test_access_token_round_trip():
    token = create_access_token({"sub": "7", "id": 7, "role": "User"})
    payload = decode_access_token(token)
    assert payload is not None
    assert payload["sub"] == "7"
    assert payload["id"] == 7
    assert payload["role"] == "User"
    assert payload["typ"] == "access"


def test_access_token_expires_after_configured_window():
    token = create_access_token({"sub": "1"})
    payload = decode_token(token)
    assert payload["exp"] - payload["iat"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60


def test_expired_access_token_is_rejected():
    token = create_access_token({"sub": "1"}, expires_delta=timedelta(seconds=-5))
    assert decode_access_token(token) is None


def test_token_signed_with_other_secret_is_rejected():
    forged = jwt.encode({"sub": "1", "id": 1, "role": "Admin", "typ": "access"}, "x" * 64, algorithm="HS256")
    assert decode_access_token(forged) is None


def test_non_access_token_type_is_rejected():
    token = jwt.encode({"sub": "1", "typ": "refresh"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    assert decode_token(token) is not None
    assert decode_access_token(token) is None


def test_garbage_token_is_rejected():
    assert decode_access_token("not-a-jwt") is None


def test_opaque_tokens_carry_320_bits():
    token = generate_opaque_token()
    assert len(token) == 80
    int(token, 16)
    assert token != generate_opaque_token()


def test_password_hash_verifies_only_the_original_password():
    hashed = get_password_hash("Passw0rd!")
    assert hashed != "Passw0rd!"
    assert verify_password("Passw0rd!", hashed) is True
    assert verify_password("passw0rd!", hashed) is False


def test_verify_password_with_malformed_hash_is_false():
    assert verify_password("Passw0rd!", "not-a-bcrypt-hash") is False
