"""Concurrent registration and moderation against one event.

Every worker gets its own session and coordinator, the way separate requests
would. The database write lock is the only thing serializing them.
"""
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import func, select

from clubflow.errors import ConflictError
from clubflow.models.event import Event, EventStatus
from clubflow.models.registration import EventRegistration, RegistrationStatus
from clubflow.models.user import Role
from clubflow.services.coordinator import WorkflowCoordinator
from tests.conftest import create_test_club, create_test_event, create_test_user, fetch

WORKERS = 8


def _register(database, pipeline, identity, event_id):
    with database.session_factory() as session:
        coordinator = WorkflowCoordinator(session, pipeline)
        reg = coordinator.register(identity, event_id)
        coordinator.hooks.run()
        return reg.status


def test_parallel_registrations_never_exceed_capacity(database, pipeline):
    owner = create_test_user(database, role=Role.club_moderator)
    club_id = create_test_club(database)
    event_id = create_test_event(database, club_id, owner.user_id, capacity=3)
    users = [create_test_user(database) for _ in range(12)]

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        statuses = list(pool.map(lambda u: _register(database, pipeline, u, event_id), users))

    assert statuses.count(RegistrationStatus.confirmed) == 3
    assert statuses.count(RegistrationStatus.waitlist) == 9

    with database.session_factory() as session:
        confirmed_rows = session.execute(
            select(func.count(EventRegistration.registration_id)).where(
                EventRegistration.event_id == event_id,
                EventRegistration.status == RegistrationStatus.confirmed,
            )
        ).scalar_one()
    assert confirmed_rows == 3
    assert fetch(database, Event, event_id).confirmed_count == 3


def test_parallel_approvals_have_one_winner(database, pipeline):
    admin = create_test_user(database, role=Role.system_admin)
    club_id = create_test_club(database)
    event_id = create_test_event(database, club_id, admin.user_id, status=EventStatus.pending)

    def _approve(_):
        with database.session_factory() as session:
            try:
                WorkflowCoordinator(session, pipeline).approve_event(admin, event_id)
            except ConflictError:
                return False
            return True

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        outcomes = list(pool.map(_approve, range(WORKERS)))

    assert outcomes.count(True) == 1
    assert fetch(database, Event, event_id).status == EventStatus.approved
