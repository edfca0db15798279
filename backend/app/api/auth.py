"""Authentication API endpoints."""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_hub, require_admin
from app.config import get_settings
from app.core.errors import ChatError
from app.core.security import create_access_token
from app.database import get_db
from app.models import User
from app.schemas import (
    LoginRequest,
    PreferencesEnvelope,
    PreferencesUpdate,
    RegisterRequest,
    TokenResponse,
    UserEnvelope,
    UserRead,
    UserStatsEnvelope,
)
from app.schemas.messages import StatusEnvelope
from app.services import users as user_service
from app.services.google_oauth import get_google_oauth
from huddle.realtime import RealtimeHub, timestamp

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(token=create_access_token(user.id), user=UserRead.from_user(user))


def _client_redirect(path: str, **params: str) -> RedirectResponse:
    url = f"{settings.client_url.rstrip('/')}{path}?{urlencode(params)}"
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.get("/google")
def google_login() -> RedirectResponse:
    """Send the browser to Google's consent screen."""

    oauth = get_google_oauth(settings)
    return RedirectResponse(oauth.authorization_url(), status_code=status.HTTP_302_FOUND)


@router.get("/google/callback")
def google_callback(
    code: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    """Finish Google sign-in and hand the token to the frontend."""

    if error or not code:
        logger.info("Google sign-in aborted: %s", error or "missing code")
        return _client_redirect("/login", error="auth_failed")

    try:
        oauth = get_google_oauth(settings)
        identity = oauth.get_identity(oauth.exchange_code(code))
        user = user_service.resolve_google_user(db, identity)
    except ChatError as exc:
        logger.info("Google sign-in failed: %s", exc.message)
        return _client_redirect("/login", error="auth_failed")
    except Exception:
        logger.exception("Unexpected failure during Google sign-in")
        return _client_redirect("/login", error="server_error")

    return _client_redirect("/auth/callback", token=create_access_token(user.id))


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register_user(payload: RegisterRequest, db: Session = Depends(get_db)) -> TokenResponse:
    """Register a local account and sign it in."""

    user = user_service.register_user(db, payload)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
def login_user(credentials: LoginRequest, db: Session = Depends(get_db)) -> TokenResponse:
    """Authenticate a local account and return a JWT access token."""

    user = user_service.authenticate_user(db, credentials.email, credentials.password)
    return _token_response(user)


@router.get("/me", response_model=UserEnvelope)
def read_me(current_user: User = Depends(get_current_user)) -> UserEnvelope:
    return UserEnvelope(user=UserRead.from_user(current_user))


@router.post("/logout", response_model=StatusEnvelope)
def logout(current_user: User = Depends(get_current_user)) -> StatusEnvelope:
    # Tokens are stateless; the client discards its copy.
    logger.info("User %s logged out", current_user.id)
    return StatusEnvelope(message="Logged out successfully")


@router.post("/refresh", response_model=TokenResponse)
def refresh_access_token(current_user: User = Depends(get_current_user)) -> TokenResponse:
    """Issue a fresh access token for the authenticated user."""

    return _token_response(current_user)


@router.put("/preferences", response_model=PreferencesEnvelope)
def update_preferences(
    payload: PreferencesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PreferencesEnvelope:
    user = user_service.update_preferences(db, current_user, payload)
    return PreferencesEnvelope(
        message="Preferences updated successfully",
        preferences=UserRead.from_user(user).preferences,
    )


@router.get("/stats", response_model=UserStatsEnvelope)
def read_user_stats(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> UserStatsEnvelope:
    return UserStatsEnvelope(stats=user_service.user_stats(db))


@router.post("/deactivate", response_model=StatusEnvelope)
async def deactivate_account(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    hub: RealtimeHub = Depends(get_hub),
) -> StatusEnvelope:
    user_id, name = current_user.id, current_user.name
    user_service.deactivate_user(db, current_user)

    if await hub.disconnect_user(user_id, reason="Account deactivated"):
        await hub.publish(
            "user_disconnected", {"user_id": user_id, "name": name, "timestamp": timestamp()}
        )
    return StatusEnvelope(message="Account deactivated successfully")
