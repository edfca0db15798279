"""Schemas for authentication and account endpoints."""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator

from app.models.enums import ThemePreference, UserRole

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,128}$")


class NotificationPreferences(BaseModel):
    email: bool = True
    push: bool = True


class UserPreferences(BaseModel):
    theme: ThemePreference = ThemePreference.AUTO
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)


class UserRead(BaseModel):
    """Sanitized representation of a user returned from the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    avatar: str | None = None
    role: UserRole
    is_active: bool
    is_email_verified: bool
    last_login: datetime | None = None
    login_count: int = 0
    preferences: UserPreferences
    created_at: datetime

    @classmethod
    def from_user(cls, user) -> "UserRead":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            avatar=user.avatar,
            role=user.role,
            is_active=user.is_active,
            is_email_verified=user.is_email_verified,
            last_login=user.last_login,
            login_count=user.login_count,
            preferences=UserPreferences(
                theme=user.theme,
                notifications=NotificationPreferences(email=user.notify_email, push=user.notify_push),
            ),
            created_at=user.created_at,
        )


class UserEnvelope(BaseModel):
    success: bool = True
    user: UserRead


class RegisterRequest(BaseModel):
    """Payload for creating a local (password) account."""

    email: constr(strip_whitespace=True, to_lower=True, pattern=EMAIL_PATTERN, max_length=255)
    name: constr(strip_whitespace=True, min_length=2, max_length=50)
    password: constr(min_length=8, max_length=128) = Field(
        ...,
        description=(
            "At least 8 characters with an uppercase letter, a lowercase letter, "
            "a digit and one of @$!%*?&"
        ),
    )

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, value: str) -> str:
        if not PASSWORD_PATTERN.match(value):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, "
                "one number, and one special character"
            )
        return value


class LoginRequest(BaseModel):
    email: constr(strip_whitespace=True, to_lower=True, min_length=3, max_length=255)
    password: constr(min_length=1, max_length=128)


class TokenResponse(BaseModel):
    """Access token returned after successful authentication."""

    success: bool = True
    token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type, always 'bearer'")
    user: UserRead


class NotificationPreferencesUpdate(BaseModel):
    email: bool | None = None
    push: bool | None = None


class PreferencesUpdate(BaseModel):
    theme: ThemePreference | None = None
    notifications: NotificationPreferencesUpdate | None = None

    @field_validator("theme", mode="before")
    @classmethod
    def reject_blank_theme(cls, value):
        if value == "":
            return None
        return value


class PreferencesEnvelope(BaseModel):
    success: bool = True
    message: str
    preferences: UserPreferences


class UserStats(BaseModel):
    total_users: int = 0
    active_users: int = 0
    verified_users: int = 0
    avg_login_count: float = 0.0
    locked_users: int = 0


class UserStatsEnvelope(BaseModel):
    success: bool = True
    stats: UserStats
