"""Pytest fixtures: a file-backed SQLite database per test.

SQLite transactions take the write lock at BEGIN, so tests never keep a
session open across an API call; the helpers below use short sessions.
"""
import itertools
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from clubflow.application import create_app
from clubflow.config import Settings
from clubflow.database import Database
from clubflow.models.club import Club
from clubflow.models.event import Event, EventStatus
from clubflow.models.news import NewsPost, NewsStatus
from clubflow.models.user import Role, User
from clubflow.security import Identity, create_access_token
from clubflow.services.coordinator import WorkflowCoordinator
from clubflow.services.side_effects import SideEffectPipeline

_seq = itertools.count(1)


@pytest.fixture(scope="function")
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        JWT_SECRET="test-secret",
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture(scope="function")
def database(settings):
    """Create a fresh schema for each test."""
    database = Database(settings.DATABASE_URL)
    database.create_all()
    yield database
    database.drop_all()
    database.dispose()


@pytest.fixture(scope="function")
def pipeline(database):
    return SideEffectPipeline(database.session_factory)


@pytest.fixture(scope="function")
def client(settings, database):
    """TestClient over an app bound to the per-test database."""
    app = create_app(settings, database)
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def run_command(database, pipeline):
    """Run one coordinator command in its own session, then its hooks."""

    def _run(command: str, identity, *args, **kwargs):
        with database.session_factory() as session:
            coordinator = WorkflowCoordinator(session, pipeline)
            result = getattr(coordinator, command)(identity, *args, **kwargs)
            coordinator.hooks.run()
            return result

    return _run


# ---------------------------------------------------------------------------
# Helpers: seed rows directly, mint tokens
# ---------------------------------------------------------------------------
def create_test_user(database: Database, role: Role = Role.student, first_name: str = "Test") -> Identity:
    """Insert a user and return an Identity for them."""
    n = next(_seq)
    with database.session_factory() as session:
        user = User(
            student_id=f"S{n:06d}",
            email=f"user{n}@campus.test",
            first_name=first_name,
            last_name=f"User{n}",
            role=role,
        )
        session.add(user)
        session.commit()
        return Identity(user_id=user.user_id, role=role)


def create_test_club(database: Database, name: str = "Chess Club") -> str:
    n = next(_seq)
    with database.session_factory() as session:
        club = Club(club_name=name, club_code=f"C{n:04d}")
        session.add(club)
        session.commit()
        return club.club_id


def create_test_event(
    database: Database,
    club_id: str,
    created_by: str,
    capacity: int = 2,
    status: EventStatus = EventStatus.approved,
    title: str = "Opening Night",
) -> str:
    start = datetime.now(timezone.utc) + timedelta(days=7)
    with database.session_factory() as session:
        event = Event(
            club_id=club_id,
            created_by=created_by,
            title=title,
            start_datetime=start,
            end_datetime=start + timedelta(hours=2),
            capacity=capacity,
            status=status,
        )
        session.add(event)
        session.commit()
        return event.event_id


def create_test_news(
    database: Database,
    club_id: str,
    created_by: str,
    status: NewsStatus = NewsStatus.pending,
    title: str = "Welcome back",
) -> str:
    with database.session_factory() as session:
        post = NewsPost(
            club_id=club_id,
            created_by=created_by,
            title=title,
            content="Meetings resume on Monday.",
            status=status,
        )
        session.add(post)
        session.commit()
        return post.news_id


def fetch(database: Database, model, pk):
    """Load one row in a short session."""
    with database.session_factory() as session:
        return session.get(model, pk)


def auth_headers(settings: Settings, identity: Identity) -> dict:
    token = create_access_token(settings, identity.user_id, identity.role)
    return {"Authorization": f"Bearer {token}"}
