import os
from pathlib import Path

# Must be set before barbershop.database is imported anywhere
os.environ.setdefault("PYTEST_RUN", "1")
os.environ.setdefault("MAINTENANCE_LOOP_ENABLED", "0")
os.environ.setdefault("DB_RETRY_BACKOFF_SECONDS", "0")

from dotenv import load_dotenv
import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from barbershop.database import enable_sqlite_pragmas
from barbershop.models.base import BaseModel
from barbershop.utils import redis_cache

# Load environment variables for tests
load_dotenv(Path(__file__).resolve().parents[1] / ".env.test")


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Give every test its own empty in-memory Redis."""
    fake = fakeredis.FakeStrictRedis(server=fakeredis.FakeServer())
    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: fake)
    return fake


def setup_db():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    BaseModel.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    return Session()


@pytest.fixture
def db():
    session = setup_db()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions on a file-backed SQLite database, for tests that race threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    enable_sqlite_pragmas(engine)
    BaseModel.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()
