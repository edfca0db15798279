"""Security helpers for password hashing and access token management."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.errors import AuthenticationFailed
from app.models import User

settings = get_settings()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*$")
TOKEN_TYPE = "access"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hashed counterpart."""

    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password for storing in the database."""

    return pwd_context.hash(password)


def _parse_user_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.isdigit():
        parsed = int(value)
        return parsed if parsed > 0 else None
    return None


def create_access_token(user_id: int | str, expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT access token for *user_id*."""

    subject = _parse_user_id(user_id)
    if subject is None:
        raise ValueError("Invalid user ID provided for token generation")

    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload: Dict[str, Any] = {
        "sub": str(subject),
        "type": TOKEN_TYPE,
        "iat": now,
        "exp": expire,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> int:
    """Validate *token* and return the embedded user id.

    Checks the three-segment shape, signature, expiry, issuer, audience and
    that the subject is a well-formed identifier. Every failure raises
    :class:`AuthenticationFailed` with a specific title.
    """

    if not token or not TOKEN_PATTERN.match(token):
        raise AuthenticationFailed(
            "The provided token has an invalid format", error="Invalid token format"
        )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationFailed(
            "Your session has expired. Please login again", error="Token expired"
        ) from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationFailed("The provided token is invalid", error="Invalid token") from exc

    if payload.get("type") != TOKEN_TYPE or "sub" not in payload:
        raise AuthenticationFailed("The token contains invalid data", error="Invalid token payload")

    user_id = _parse_user_id(payload.get("sub"))
    if user_id is None:
        raise AuthenticationFailed("The token contains an invalid user ID", error="Invalid user ID")
    return user_id


def resolve_user(token: str, db: Session) -> User:
    """Resolve an active user from *token* or raise :class:`AuthenticationFailed`."""

    user_id = verify_access_token(token)
    user = db.get(User, user_id)
    if user is None:
        raise AuthenticationFailed("User not found", error="Invalid token")
    if not user.is_active:
        raise AuthenticationFailed("Your account has been deactivated", error="Account deactivated")
    return user


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the credential part of an ``Authorization: Bearer`` header."""

    if not authorization:
        return None
    scheme, _, credential = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    credential = credential.strip()
    return credential or None
