"""Shared test fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from companion_engine.core.event_bus import EventBus
from companion_engine.db.database import get_db
from companion_engine.db.models import Base
from companion_engine.main import app
from companion_engine.services.companion_service import CompanionService
from companion_engine.services.ledger import register_player

# Fixed clock: 2023-11-14T22:13:20Z in ms
NOW = 1_700_000_000_000
MINUTE = 60_000
HOUR = 60 * MINUTE

PLAYER_ID = "p1"

TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = sessionmaker(bind=TEST_ENGINE, autocommit=False, autoflush=False)


def _override_get_db():
    db = TestSession()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = _override_get_db


@pytest.fixture(autouse=True)
def _tables():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=TEST_ENGINE)
    yield
    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture()
def client() -> TestClient:
    """FastAPI TestClient wired to an in-memory SQLite database."""
    app.state.event_bus = EventBus()
    return TestClient(app)


@pytest.fixture()
def db_session() -> Session:
    """Raw database session for direct DB assertions."""
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def service(db_session: Session, event_bus: EventBus) -> CompanionService:
    """CompanionService for PLAYER_ID (100 gems, 100 XP) on a frozen clock."""
    register_player(db_session, PLAYER_ID, gems=100, experience=100)
    return CompanionService.for_player(
        db_session, PLAYER_ID, event_bus, clock=lambda: NOW
    )
