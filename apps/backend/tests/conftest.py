from __future__ import annotations

import os
import tempfile
from datetime import date, datetime
from typing import Any, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from billcycle import models
from billcycle.core.clock import FixedClock, get_clock
from billcycle.core.database import Base, configure_sqlite, get_db
from billcycle.main import app


# Every test runs "now" = 2024-03-20 12:00, inside the Marco/2024 bill of a card closing on the 13th
NOW = datetime(2024, 3, 20, 12, 0, 0)


@pytest.fixture(scope="session")
def test_db_url() -> Generator[str, Any, Any]:
    # Throwaway file database so the developer's db.sqlite3 is never touched
    fd, path = tempfile.mkstemp(prefix="billcycle_test_", suffix=".sqlite3")
    os.close(fd)
    url = f"sqlite:///{path}"
    yield url
    try:
        os.remove(path)
    except OSError:
        pass


@pytest.fixture(scope="session")
def engine(test_db_url: str):
    eng = create_engine(test_db_url, connect_args={"check_same_thread": False})
    configure_sqlite(eng, wal=False)
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Any, Any, Any]:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    session.add(models.User(email="demo@example.com", is_active=True))
    session.commit()

    try:
        yield session
    finally:
        session.close()
        # Children first so foreign keys stay satisfied
        with engine.begin() as conn:
            for tbl in reversed(Base.metadata.sorted_tables):
                conn.execute(tbl.delete())


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture()
def user(db_session) -> models.User:
    return db_session.query(models.User).order_by(models.User.id).first()


@pytest.fixture(autouse=True)
def override_dependency(db_session, clock):
    def _get_db_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    app.dependency_overrides[get_clock] = lambda: clock
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def add_entry(db_session, user):
    """Insert a ledger entry directly; expenses are stored negative."""

    def _add(
        description: str,
        amount: float,
        occurred_at: date,
        *,
        type: models.TxnType = models.TxnType.EXPENSE,
        origin: str = "Nubank",
        **extra,
    ) -> models.Transaction:
        signed = -abs(amount) if type == models.TxnType.EXPENSE else abs(amount)
        row = models.Transaction(
            user_id=user.id,
            description=description,
            amount=signed,
            occurred_at=occurred_at,
            type=type,
            origin=origin,
            **extra,
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _add
