from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.debug, "future": True, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        # Sessions are opened from the threadpool and from WebSocket handlers.
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_recycle"] = 3600
    return options


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_db() -> Iterator[Session]:
    """Request-scoped session for REST handlers."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Iterator[Session]:
    """Short-lived session for a single live-channel event.

    WebSocket connections live for minutes; holding one session for the
    whole connection would pin a pooled database connection per user.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
