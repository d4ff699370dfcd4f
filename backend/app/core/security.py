"""Security utilities - JWT, password hashing, opaque tokens"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
from jose import JWTError, jwt
import bcrypt
from app.config import settings
import secrets

# Opaque tokens carry 40 random bytes (320 bits), hex-encoded.
OPAQUE_TOKEN_BYTES = 40


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Malformed stored hash
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    ).decode('utf-8')


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create JWT access token

    Args:
        data: Claims to encode in token
        expires_delta: Token expiration time

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()
    now = datetime.utcnow()

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "exp": expire,
        "iat": now,
        "typ": "access",
        "jti": secrets.token_urlsafe(32)  # Unique token ID
    })

    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT's signature and expiry

    Args:
        token: JWT token string

    Returns:
        Optional[Dict]: Decoded token data or None if invalid
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode a JWT and require it to be an access token"""
    payload = decode_token(token)
    if not payload or payload.get("typ") != "access":
        return None
    return payload


def generate_opaque_token() -> str:
    """
    Generate a random opaque token for refresh, verification and reset flows

    Returns:
        str: Hex-encoded random token
    """
    return secrets.token_hex(OPAQUE_TOKEN_BYTES)


@dataclass(frozen=True)
class Principal:
    """Resolved identity attached to an authenticated request"""
    id: int
    role: str
    owns_token: Callable[[str], bool] = field(repr=False, compare=False)

    @property
    def is_admin(self) -> bool:
        return self.role == "Admin"
