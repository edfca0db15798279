"""Account management: sign-in flows, lockout, preferences and statistics."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.errors import AuthenticationFailed, ValidationFailed
from app.core.security import get_password_hash, verify_password
from app.models import User
from app.models.chat import utcnow
from app.schemas import PreferencesUpdate, RegisterRequest, UserStats
from app.services.google_oauth import GoogleIdentity

logger = logging.getLogger(__name__)

settings = get_settings()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email.lower())).scalar_one_or_none()


def record_login(db: Session, user: User) -> User:
    user.last_login = utcnow()
    user.login_count = (user.login_count or 0) + 1
    user.failed_login_attempts = 0
    user.lock_until = None
    db.commit()
    db.refresh(user)
    return user


def resolve_google_user(db: Session, identity: GoogleIdentity) -> User:
    """Find or create the account behind a Google identity.

    Lookup order is google id, then email (linking the Google account to an
    existing local one), then a brand new user.
    """

    user = db.execute(select(User).where(User.google_id == identity.google_id)).scalar_one_or_none()
    if user is None:
        user = get_user_by_email(db, identity.email)
        if user is not None:
            logger.info("Linking Google account to existing user %s", user.id)
            user.google_id = identity.google_id
            user.is_email_verified = True
            if not user.avatar and identity.picture:
                user.avatar = identity.picture
        else:
            user = User(
                google_id=identity.google_id,
                email=identity.email,
                name=identity.name,
                avatar=identity.picture,
                is_email_verified=True,
            )
            db.add(user)
            db.flush()
            logger.info("Created user %s from Google sign-in", user.id)

    if not user.is_active:
        db.rollback()
        raise AuthenticationFailed("Your account has been deactivated", error="Account deactivated")
    return record_login(db, user)


def register_user(db: Session, payload: RegisterRequest) -> User:
    if get_user_by_email(db, payload.email) is not None:
        raise ValidationFailed("An account with this email already exists", error="Registration failed")

    user = User(
        email=payload.email,
        name=payload.name,
        hashed_password=get_password_hash(payload.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return record_login(db, user)


def authenticate_user(db: Session, email: str, password: str) -> User:
    """Password sign-in with failed-attempt lockout."""

    user = get_user_by_email(db, email)
    if user is None or not user.hashed_password:
        raise AuthenticationFailed("Incorrect email or password", error="Invalid credentials")
    if user.is_locked:
        raise AuthenticationFailed(
            "Account temporarily locked due to too many failed login attempts",
            error="Account locked",
        )
    if not user.is_active:
        raise AuthenticationFailed("Your account has been deactivated", error="Account deactivated")

    if not verify_password(password, user.hashed_password):
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        if user.failed_login_attempts >= settings.login_max_failed_attempts:
            user.lock_until = utcnow() + timedelta(minutes=settings.login_lock_minutes)
            logger.warning("Locking user %s after %s failed logins", user.id, user.failed_login_attempts)
        db.commit()
        raise AuthenticationFailed("Incorrect email or password", error="Invalid credentials")

    return record_login(db, user)


def update_preferences(db: Session, user: User, payload: PreferencesUpdate) -> User:
    if payload.theme is not None:
        user.theme = payload.theme
    if payload.notifications is not None:
        if payload.notifications.email is not None:
            user.notify_email = payload.notifications.email
        if payload.notifications.push is not None:
            user.notify_push = payload.notifications.push
    db.commit()
    db.refresh(user)
    return user


def deactivate_user(db: Session, user: User) -> User:
    user.is_active = False
    db.commit()
    db.refresh(user)
    logger.info("User %s deactivated their account", user.id)
    return user


def user_stats(db: Session) -> UserStats:
    total, active, verified, average = db.execute(
        select(
            func.count(User.id),
            func.sum(case((User.is_active.is_(True), 1), else_=0)),
            func.sum(case((User.is_email_verified.is_(True), 1), else_=0)),
            func.avg(User.login_count),
        )
    ).one()
    locked = db.execute(
        select(func.count(User.id)).where(User.lock_until.is_not(None), User.lock_until > utcnow())
    ).scalar_one()
    return UserStats(
        total_users=int(total or 0),
        active_users=int(active or 0),
        verified_users=int(verified or 0),
        avg_login_count=round(float(average or 0), 2),
        locked_users=int(locked or 0),
    )
