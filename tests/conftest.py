import importlib
import os
from datetime import datetime, timedelta
from pathlib import Path

os.environ["EXPIRY_SWEEP_ENABLED"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"

import pytest
from fastapi.testclient import TestClient
from alembic import command
from alembic.config import Config

from app.branchlink.core.clock import get_clock
from tests.db_utils import create_postgres_test_database


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url

    import app.branchlink.core.config as config
    import app.branchlink.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    return main.create_app(), session


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


@pytest.fixture()
def clock():
    return FakeClock(datetime(2026, 1, 5, 9, 0, 0))


@pytest.fixture()
def client(tmp_path: Path, clock):
    database_url = os.getenv("DATABASE_URL", "")
    cleanup = None

    if database_url.startswith("postgres"):
        database_url, cleanup = create_postgres_test_database(database_url)
    else:
        db_path = tmp_path / "test.db"
        database_url = f"sqlite+pysqlite:///{db_path}"

    _run_migrations(database_url)
    app, session = _setup_app(database_url)
    app.dependency_overrides[get_clock] = lambda: clock
    app.state.notifier.clock = clock

    with TestClient(app) as client:
        yield client

    session.engine.dispose()
    if cleanup:
        cleanup()


@pytest.fixture()
def db_session(client):
    from app.branchlink.db.session import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def notifier(client):
    return client.app.state.notifier
