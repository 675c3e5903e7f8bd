"""Tests for post-commit activity logging and notifications."""
import logging

import pytest
from sqlalchemy import select

from clubflow.errors import ConflictError
from clubflow.models.activity_log import ActivityLogEntry
from clubflow.models.event import EventStatus
from clubflow.models.notification import Notification
from clubflow.models.user import Role
from clubflow.services.coordinator import WorkflowCoordinator
from clubflow.services.side_effects import PostCommitHooks, SideEffectPipeline
from tests.conftest import auth_headers, create_test_club, create_test_event, create_test_user


def _rows(database, model, **filters):
    with database.session_factory() as session:
        query = select(model)
        for column, value in filters.items():
            query = query.where(getattr(model, column) == value)
        return session.execute(query).scalars().all()


class _FailingPipeline(SideEffectPipeline):
    """Pipeline whose writes always fail."""

    def _write(self, row):
        raise RuntimeError("audit store unavailable")


class TestPostCommitHooks:

    def test_runs_in_order_and_drains(self):
        calls = []
        hooks = PostCommitHooks()
        hooks.add(calls.append, 1)
        hooks.add(calls.append, 2)
        assert len(hooks) == 2

        hooks.run()
        hooks.run()
        assert calls == [1, 2]
        assert len(hooks) == 0

    def test_failing_hook_does_not_stop_the_rest(self, caplog):
        calls = []

        def boom():
            raise RuntimeError("boom")

        hooks = PostCommitHooks()
        hooks.add(boom)
        hooks.add(calls.append, "after")
        with caplog.at_level(logging.ERROR):
            hooks.run()
        assert calls == ["after"]
        assert "boom" in caplog.text


class TestPipeline:

    def test_log_activity_writes_entry(self, database, pipeline):
        user = create_test_user(database)
        assert pipeline.log_activity(user.user_id, "club_created", "club", "c-1", {"code": "CHESS"}) is True

        entries = _rows(database, ActivityLogEntry, user_id=user.user_id)
        assert len(entries) == 1
        assert entries[0].details == {"code": "CHESS"}

    def test_notify_writes_unread_notification(self, database, pipeline):
        user = create_test_user(database)
        assert pipeline.notify(user.user_id, "Hi", "Hello", "welcome") is True
        note = _rows(database, Notification, user_id=user.user_id)[0]
        assert note.is_read is False
        assert note.notification_type == "welcome"

    def test_write_failure_is_swallowed(self, database):
        user = create_test_user(database)
        failing = _FailingPipeline(database.session_factory)
        assert failing.log_activity(user.user_id, "x", "event", "e-1") is False
        assert failing.notify(user.user_id, "t", "m", "x") is False

    def test_unknown_user_is_dropped_not_raised(self, pipeline, database):
        assert pipeline.log_activity("nobody", "x", "event", "e-1") is False
        assert _rows(database, ActivityLogEntry) == []


class TestCoordinatorSideEffects:

    def test_register_logs_and_notifies(self, run_command, database):
        owner = create_test_user(database, role=Role.club_moderator)
        student = create_test_user(database)
        event_id = create_test_event(database, create_test_club(database), owner.user_id, capacity=1)

        run_command("register", student, event_id)

        entries = _rows(database, ActivityLogEntry, user_id=student.user_id)
        assert [(e.action, e.details) for e in entries] == [("event_registered", {"status": "confirmed"})]
        notes = _rows(database, Notification, user_id=student.user_id)
        assert [n.notification_type for n in notes] == ["registration_confirmation"]

    def test_waitlisted_registrant_gets_waitlist_notice(self, run_command, database):
        owner = create_test_user(database, role=Role.club_moderator)
        student = create_test_user(database)
        event_id = create_test_event(database, create_test_club(database), owner.user_id, capacity=0)

        run_command("register", student, event_id)
        notes = _rows(database, Notification, user_id=student.user_id)
        assert [n.notification_type for n in notes] == ["registration_waitlisted"]

    def test_repeat_register_logs_but_does_not_renotify(self, run_command, database):
        owner = create_test_user(database, role=Role.club_moderator)
        student = create_test_user(database)
        event_id = create_test_event(database, create_test_club(database), owner.user_id)

        run_command("register", student, event_id)
        run_command("register", student, event_id)
        assert len(_rows(database, ActivityLogEntry, user_id=student.user_id)) == 2
        assert len(_rows(database, Notification, user_id=student.user_id)) == 1

    def test_nothing_queued_when_command_fails(self, database, pipeline):
        admin = create_test_user(database, role=Role.system_admin)
        event_id = create_test_event(database, create_test_club(database), admin.user_id,
                                     status=EventStatus.approved)
        with database.session_factory() as session:
            coordinator = WorkflowCoordinator(session, pipeline)
            with pytest.raises(ConflictError):
                coordinator.approve_event(admin, event_id)
            assert len(coordinator.hooks) == 0

    def test_failed_side_effects_keep_the_registration(self, database):
        owner = create_test_user(database, role=Role.club_moderator)
        student = create_test_user(database)
        event_id = create_test_event(database, create_test_club(database), owner.user_id)

        with database.session_factory() as session:
            coordinator = WorkflowCoordinator(session, _FailingPipeline(database.session_factory))
            reg = coordinator.register(student, event_id)
            coordinator.hooks.run()

        assert reg.status.value == "confirmed"
        assert _rows(database, ActivityLogEntry) == []
        assert len(_rows(database, Notification)) == 0

    def test_api_side_effects_run_after_response(self, client, settings, database):
        owner = create_test_user(database, role=Role.club_moderator)
        student = create_test_user(database)
        event_id = create_test_event(database, create_test_club(database), owner.user_id)

        resp = client.post(f"/api/events/{event_id}/register", headers=auth_headers(settings, student))
        assert resp.status_code == 201
        actions = [e.action for e in _rows(database, ActivityLogEntry, user_id=student.user_id)]
        assert actions == ["event_registered"]
