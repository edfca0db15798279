"""Google OAuth 2.0 authorization-code flow.

1. Redirect the browser to :meth:`GoogleOAuthService.authorization_url`
2. Exchange the ``code`` Google sends back for an access token
3. Use the access token to fetch the identity from Google's userinfo endpoint
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from app.config import Settings, get_settings
from app.core.errors import AuthenticationFailed, ServiceUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoogleIdentity:
    google_id: str
    email: str
    name: str
    picture: str | None = None
    email_verified: bool = False


class GoogleOAuthService:
    """Handles the Google redirect flow and identity resolution."""

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
    SCOPES = "openid email profile"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        client: httpx.Client | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._client = client or httpx.Client(timeout=10.0)

    def authorization_url(self, state: str | None = None) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.SCOPES,
            "access_type": "online",
            "prompt": "select_account",
        }
        if state:
            params["state"] = state
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> str:
        """Trade an authorization code for an access token.

        Raises:
            AuthenticationFailed: Google rejected the code.
            ServiceUnavailable: Google could not be reached.
        """
        try:
            resp = self._client.post(
                self.TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
            )
        except httpx.HTTPError as exc:
            logger.warning("Google token endpoint unreachable: %s", exc)
            raise ServiceUnavailable("Google sign-in is temporarily unavailable") from exc

        data = resp.json() if resp.content else {}
        if resp.status_code != 200 or "access_token" not in data:
            error_desc = data.get("error_description") or data.get("error") or resp.status_code
            logger.info("Google rejected authorization code: %s", error_desc)
            raise AuthenticationFailed("Google sign-in failed", error="OAuth error")
        return data["access_token"]

    def get_identity(self, access_token: str) -> GoogleIdentity:
        """Fetch user identity from Google's userinfo endpoint."""

        try:
            resp = self._client.get(
                self.USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AuthenticationFailed("Google sign-in failed", error="OAuth error") from exc
        except httpx.HTTPError as exc:
            raise ServiceUnavailable("Google sign-in is temporarily unavailable") from exc

        data = resp.json()
        if not data.get("id") or not data.get("email"):
            raise AuthenticationFailed("Google did not return a usable profile", error="OAuth error")

        return GoogleIdentity(
            google_id=str(data["id"]),
            email=str(data["email"]).lower(),
            name=(data.get("name") or data["email"].split("@")[0])[:50],
            picture=data.get("picture") or None,
            email_verified=bool(data.get("verified_email", False)),
        )


def get_google_oauth(settings: Settings | None = None) -> GoogleOAuthService:
    settings = settings or get_settings()
    if not settings.google_oauth_enabled:
        raise ServiceUnavailable("Google sign-in is not configured", error="OAuth disabled")
    return GoogleOAuthService(
        settings.google_client_id or "",
        settings.google_client_secret or "",
        settings.google_redirect_uri,
    )
