import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import sys
import os

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.app.database import Base, get_db
from backend.app import main
from backend.app.main import app, app_state, get_session_factory
from backend.app.repositories import CountryRepository, ClubRepository, PlayerStatRepository
from helpers import FakeSession, make_settings


# In-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture(scope="function")
def db_session():
    """Create a fresh in-memory database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db_session):
    return TestingSessionLocal


@pytest.fixture
def country_repository(session_factory):
    return CountryRepository(session_factory)


@pytest.fixture
def club_repository(session_factory):
    return ClubRepository(session_factory)


@pytest.fixture
def stat_repository(session_factory):
    return PlayerStatRepository(session_factory)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture(scope="function")
def client(db_session, monkeypatch):
    """TestClient with database dependency overrides and no browser."""
    def override_get_db():
        try:
            yield db_session
        finally:
            db_session.close()

    monkeypatch.setattr(main, "engine", engine)
    monkeypatch.setattr(main, "ScraperSession", FakeSession)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    app_state.pipeline = None
    app_state.session = None
