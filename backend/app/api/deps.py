"""FastAPI dependencies for the API layer."""

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.errors import AuthenticationFailed, PermissionDenied
from app.core.security import resolve_user
from app.database import get_db
from app.models import User, UserRole
from huddle.realtime import RealtimeHub, get_realtime_hub

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Retrieve the active user behind the bearer token."""

    if not token:
        raise AuthenticationFailed("Access token required", error="Authentication required")
    return resolve_user(token, db)


def get_optional_user(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User | None:
    """Like :func:`get_current_user` but anonymous callers get ``None``."""

    if not token:
        return None
    try:
        return resolve_user(token, db)
    except AuthenticationFailed:
        return None


def require_roles(*roles: UserRole):
    allowed = frozenset(roles)

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise PermissionDenied("Insufficient permissions")
        return current_user

    return dependency


require_admin = require_roles(UserRole.ADMIN)
require_moderator = require_roles(UserRole.MODERATOR, UserRole.ADMIN)


def get_hub() -> RealtimeHub:
    return get_realtime_hub()
