"""
Shared test fixtures.

Provides:
- A fixed review clock
- In-memory card and session stores with a card factory
- A SQLite in-memory database and a TestClient bound to it
"""
import os

# Settings validate DATABASE_URL at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from app.core.database import build_engine, get_session
from app.main import app
from app.models.card import Card
from app.models.schedule import ScheduleState
from app.services.card_store import InMemoryCardStore
from app.services.scheduler_service import new_schedule_state
from app.services.session_service import InMemorySessionStore, SessionManager


USER_ID = "user-1"


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def card_store() -> InMemoryCardStore:
    return InMemoryCardStore()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def manager(card_store, session_store) -> SessionManager:
    return SessionManager(card_store, session_store)


@pytest.fixture
def add_card(card_store, now):
    """Factory adding a card to the in-memory store; returns the card."""
    def _add(
        due_at=None,
        last_reviewed_at=None,
        user_id=USER_ID,
        set_id=None,
        repetition_count=0,
        interval_days=0,
        ease_factor=2.5,
        front="Question",
        back="Answer",
    ) -> Card:
        state = ScheduleState(
            repetition_count=repetition_count,
            ease_factor=ease_factor,
            interval_days=interval_days,
            due_at=due_at or now,
            last_reviewed_at=last_reviewed_at,
        )
        card = Card(user_id=user_id, set_id=set_id, front=front, back=back)
        return card_store.add(card, state)
    return _add


@pytest.fixture
def new_state(now) -> ScheduleState:
    return new_schedule_state(now)


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://")
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def _get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()
