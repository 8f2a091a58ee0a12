from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from lotcost.core.config import get_settings
from lotcost.persistence.models import Base


def _timeout_connect_args(url: str, timeout_seconds: float) -> dict:
    if url.startswith("sqlite"):
        # Busy timeout bounds how long a writer waits on SQLite's database lock.
        return {"check_same_thread": False, "timeout": timeout_seconds}
    if url.startswith("postgresql"):
        millis = int(timeout_seconds * 1000)
        return {"options": f"-c statement_timeout={millis} -c lock_timeout={millis}"}
    return {}


def create_engine_from_url(url: str, timeout_seconds: float | None = None) -> Engine:
    if timeout_seconds is None:
        timeout_seconds = get_settings().ledger_timeout_seconds
    return create_engine(
        url,
        future=True,
        pool_pre_ping=True,
        connect_args=_timeout_connect_args(url, timeout_seconds),
    )


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False)


settings = get_settings()
engine = create_engine_from_url(settings.database_url)
SessionLocal = build_session_factory(engine)


def init_db(bind: Engine | None = None) -> None:
    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
