"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

import os

# Settings are read at import time, so these must be set before pinfall is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ADMIN_PASSWORD"] = "test-admin-password"
os.environ.pop("SMTP_HOST", None)

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from pinfall.core.security import create_admin_token, create_bowler_token
from pinfall.database import Base, build_engine, get_db
from pinfall.main import app
from pinfall.schemas.registration import RegistrationCreate
from pinfall.schemas.tournament import SquadIn, TournamentCreate
from pinfall.services.tournament_service import tournament_service

TOURNAMENT_START = datetime(2030, 5, 1, 9, 0)


@pytest.fixture
def test_engine(tmp_path):
    """
    Create a test database engine.

    File based SQLite so that sessions on different threads share one
    database, which the capacity race tests rely on.
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'pinfall-test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db_session(session_factory):
    """Create a database session for a test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    """API client wired to the per-test database"""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_admin_token()}"}


def bowler_headers(bowler_id):
    return {"Authorization": f"Bearer {create_bowler_token(bowler_id)}"}


def squad(name, capacity=10, is_qualifying=True, day_offset=0, time="9:00 AM"):
    return SquadIn(
        name=name,
        date=TOURNAMENT_START + timedelta(days=day_offset),
        time=time,
        capacity=capacity,
        is_qualifying=is_qualifying,
    )


@pytest.fixture
def tournament_factory(db_session):
    """Create tournaments through the service, overriding any TournamentCreate field"""
    def make(**overrides):
        data = {
            "name": "Spring Classic",
            "location": "Strike Zone Lanes",
            "entry_fee": 80,
            "payment_instructions": "Pay at the front desk",
            "start_date": TOURNAMENT_START,
            "squads": [squad("Squad A")],
        }
        data.update(overrides)
        return tournament_service.create_tournament(db_session, TournamentCreate(**data))

    return make


def registration_for(tournament, email, squad_ids=None, **overrides):
    """Valid registration input for a tournament; defaults to its first squad"""
    if squad_ids is None:
        squad_ids = [tournament.squads[0].id] if tournament.squads else []
    data = {
        "tournament_id": tournament.id,
        "player_name": email.split("@")[0].title(),
        "email": email,
        "phone": "0412 345 678",
        "gender": "male",
        "average_score": 180,
        "assigned_squads": squad_ids,
    }
    data.update(overrides)
    return RegistrationCreate(**data)
