"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
Day boundaries are pinned to UTC and "now" to a fixed Wednesday.
"""
import os

SQLITE_URL = "sqlite:///./test_starship.db"

os.environ.setdefault("DATABASE_URL", SQLITE_URL)
os.environ.setdefault("TIMEZONE", "UTC")
os.environ.setdefault("LOG_JSON", "false")

from types import SimpleNamespace as NS

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from starship.core.clock import get_clock
from starship.db.base import Base, get_db
from starship.main import app
import starship.models  # noqa: F401  registers every table on Base.metadata
from starship.models.task import TaskFrequency
from starship.models.user import UserRole
from starship.services import accounts, catalog

from helpers import WEDNESDAY, FixedClock, unique_name

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def clock():
    return FixedClock(WEDNESDAY)


@pytest.fixture()
def client(db, clock):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def family(db):
    """A parent with one child, both with fresh level records."""
    parent = accounts.create_user(db, unique_name("parent"), "Mom", UserRole.PARENT)
    child = accounts.create_user(
        db, unique_name("child"), "Hulu", UserRole.CHILD, parent_id=parent.id
    )
    return NS(parent=parent, child=child)


@pytest.fixture()
def daily_task(db, family):
    return catalog.create_task(
        db, family.parent.id, "整理书包", TaskFrequency.DAILY, star_coins=10, exp_reward=20
    )


@pytest.fixture()
def other_db():
    """A second, independent session for simulating a concurrent request."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
