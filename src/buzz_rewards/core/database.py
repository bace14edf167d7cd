"""Engine, session factory and declarative base for the rewards store."""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings


def create_rewards_engine(database_url: str) -> Engine:
    """Build the engine for ``database_url``.

    SQLite connections are shared across the request threadpool, so the
    same-thread check is disabled for them.
    """

    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_engine(url, future=True, connect_args={"check_same_thread": False})
    return create_engine(url, future=True, pool_pre_ping=True)


engine = create_rewards_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Yield one session per request; routers own commit and rollback."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
