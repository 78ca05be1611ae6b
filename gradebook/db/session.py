# gradebook/db/session.py

from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from gradebook.core.config import settings


def _engine_options() -> Dict[str, Any]:
    if settings.is_sqlite:
        # one shared connection so an in-memory database survives across sessions
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }

    timeout_ms = int(settings.STORE_TIMEOUT_SECONDS * 1000)
    return {
        "pool_pre_ping": True,
        "pool_timeout": settings.STORE_TIMEOUT_SECONDS,
        "connect_args": {
            "options": f"-csearch_path=public -cstatement_timeout={timeout_ms}",
            "connect_timeout": max(1, int(settings.STORE_TIMEOUT_SECONDS)),
        },
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.SQL_ECHO,
    **_engine_options(),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
