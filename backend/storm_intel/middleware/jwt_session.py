"""
JWT session tokens
"""
from datetime import datetime, timedelta, timezone

from jose import jwt

from storm_intel.config import settings


def create_access_token(user, expires_minutes: int | None = None) -> str:
    """
    Create JWT access token for user

    Args:
        user: User model with id, email, name, role

    Returns:
        JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or settings.jwt_expire_minutes)

    payload = {
        "sub": str(user.id),
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "exp": expire,
        "iat": now,
    }

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """
    Decode and validate JWT token

    Raises:
        jose.JWTError if token invalid/expired
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
