"""
Shared fixtures: a fresh SQLite database per test, API client and tokens
"""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_orderledger.db")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from orderledger.database import Base, get_db
from orderledger.limiter import limiter
from orderledger.models import NursingHomeFacility
from main import app
from tests.helpers import FACILITY_ADDRESS

limiter.enabled = False


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def facility(db):
    facility = NursingHomeFacility(name="Sunrise Manor", address=FACILITY_ADDRESS, contact_email="office@sunrise.example")
    db.add(facility)
    db.commit()
    db.refresh(facility)
    return facility


@pytest.fixture
def other_facility(db):
    facility = NursingHomeFacility(name="Maple Grove", address=FACILITY_ADDRESS)
    db.add(facility)
    db.commit()
    db.refresh(facility)
    return facility

