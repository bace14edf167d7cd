import os
import sys
from datetime import datetime, timedelta
from pathlib import Path
from uuid import uuid4

os.environ.setdefault("BUZZ_DATABASE_URL", "sqlite+pysqlite:///:memory:")


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from buzz_rewards.core.database import Base, get_db  # noqa: E402
from buzz_rewards.main import create_app  # noqa: E402
from buzz_rewards.models import DiscountKind  # noqa: E402
from buzz_rewards.services import coupon_service  # noqa: E402
from buzz_rewards.utils.datetime import utcnow  # noqa: E402


def build_engine(url: str, begin_statement: str = "BEGIN"):
    """SQLite engine with explicit BEGIN so savepoints behave as on PostgreSQL."""

    engine = create_engine(url, future=True, connect_args={"check_same_thread": False, "timeout": 30})

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql(begin_statement)

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'buzz.db'}")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def serialized_engine(tmp_path):
    """Engine whose transactions take the write lock up front, for thread races."""

    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'race.db'}", begin_statement="BEGIN IMMEDIATE")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session_factory):
    app = create_app()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_coupon():
    """Create a template and issue one coupon from it."""

    def _make(session, *, owner_id=None, discount_kind=DiscountKind.FIXED, discount_value=5000, **template_fields):
        template = coupon_service.create_template(
            session,
            name=f"template-{uuid4().hex[:8]}",
            discount_kind=discount_kind,
            discount_value=discount_value,
            **template_fields,
        )
        return coupon_service.issue_coupon(session, template_id=template.template_id, owner_id=owner_id or uuid4())

    return _make


@pytest.fixture
def past_issue_time():
    def _past(seconds: int) -> datetime:
        return utcnow() - timedelta(seconds=seconds)

    return _past
