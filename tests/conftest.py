"""Test configuration and fixtures."""

import os

import pytest

# Set test configuration BEFORE viewing_backend.config is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["RESEARCHER_API_KEY"] = "test-researcher-key"

from viewing_backend import models  # noqa: E402,F401
from viewing_backend.database import Base, SessionLocal, engine  # noqa: E402
from viewing_backend.services import ParticipantService, SessionService  # noqa: E402


@pytest.fixture(autouse=True)
def setup_test_database():
    """Fresh tables for every test; in-memory SQLite makes this cheap."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """Database session fixture."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def make_participant(db):
    def _make(participant_id="P001", condition="switching"):
        participant = ParticipantService(db).create_participant(participant_id, condition)
        db.commit()
        return participant

    return _make


@pytest.fixture
def make_session(db):
    def _make(participant, item_id="a"):
        session = SessionService(db).open_session(participant, item_id)
        db.commit()
        return session

    return _make
