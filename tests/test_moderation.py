"""Tests for the moderation state machine on events and news posts.

Covers:
- Transition table: pending -> approved/rejected, approved -> completed/cancelled
- Repeated or out-of-order moderation -> 409 conflict, state unchanged
- Role allow-lists -> 401 / 403 before anything is written
- published_at set exactly once, on publication
- Creator notified of approval; rejection is audit-logged only
"""
import pytest
from sqlalchemy import select

from clubflow.errors import ConflictError
from clubflow.models.activity_log import ActivityLogEntry
from clubflow.models.event import Event, EventStatus
from clubflow.models.news import NewsPost, NewsStatus
from clubflow.models.notification import Notification
from clubflow.models.user import Role
from clubflow.services.moderation import (
    EVENT_TRANSITIONS,
    ModerationAction,
    next_status,
)
from tests.conftest import (
    auth_headers,
    create_test_club,
    create_test_event,
    create_test_news,
    create_test_user,
    fetch,
)


def _setup(database, event_status=EventStatus.pending):
    admin = create_test_user(database, role=Role.system_admin, first_name="Admin")
    moderator = create_test_user(database, role=Role.club_moderator, first_name="Mod")
    student = create_test_user(database, first_name="Student")
    club_id = create_test_club(database)
    event_id = create_test_event(database, club_id, student.user_id, status=event_status)
    return admin, moderator, student, club_id, event_id


class TestTransitionTable:

    def test_allowed_transitions(self):
        assert next_status(EVENT_TRANSITIONS, EventStatus.pending, ModerationAction.approve) == EventStatus.approved
        assert next_status(EVENT_TRANSITIONS, EventStatus.pending, ModerationAction.reject) == EventStatus.rejected
        assert next_status(EVENT_TRANSITIONS, EventStatus.approved, ModerationAction.complete) == EventStatus.completed

    @pytest.mark.parametrize("current", [EventStatus.approved, EventStatus.rejected, EventStatus.completed])
    def test_approve_requires_pending(self, current):
        with pytest.raises(ConflictError):
            next_status(EVENT_TRANSITIONS, current, ModerationAction.approve)

    def test_terminal_states_have_no_exits(self):
        for (source, _), _target in EVENT_TRANSITIONS.items():
            assert source not in (EventStatus.rejected, EventStatus.completed, EventStatus.cancelled)


class TestEventModeration:

    def test_admin_approves_pending_event(self, client, settings, database):
        admin, _, student, _, event_id = _setup(database)
        resp = client.post(f"/api/events/{event_id}/approve", headers=auth_headers(settings, admin))
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "approved"
        assert fetch(database, Event, event_id).status == EventStatus.approved

    def test_second_approve_conflicts(self, client, settings, database):
        admin, _, _, _, event_id = _setup(database)
        headers = auth_headers(settings, admin)
        assert client.post(f"/api/events/{event_id}/approve", headers=headers).status_code == 200

        resp = client.post(f"/api/events/{event_id}/approve", headers=headers)
        assert resp.status_code == 409
        assert resp.json()["error"] == "conflict"
        assert fetch(database, Event, event_id).status == EventStatus.approved

    def test_reject_after_approve_conflicts(self, client, settings, database):
        admin, _, _, _, event_id = _setup(database)
        headers = auth_headers(settings, admin)
        client.post(f"/api/events/{event_id}/approve", headers=headers)
        resp = client.post(f"/api/events/{event_id}/reject", headers=headers)
        assert resp.status_code == 409
        assert fetch(database, Event, event_id).status == EventStatus.approved

    @pytest.mark.parametrize("role", [Role.student, Role.club_moderator])
    def test_non_admin_cannot_approve(self, client, settings, database, role):
        _, _, _, _, event_id = _setup(database)
        caller = create_test_user(database, role=role)
        resp = client.post(f"/api/events/{event_id}/approve", headers=auth_headers(settings, caller))
        assert resp.status_code == 403
        assert resp.json()["error"] == "forbidden"
        assert fetch(database, Event, event_id).status == EventStatus.pending

    def test_anonymous_cannot_approve(self, client, database):
        _, _, _, _, event_id = _setup(database)
        resp = client.post(f"/api/events/{event_id}/approve")
        assert resp.status_code == 401
        assert resp.json()["error"] == "unauthorized"
        assert fetch(database, Event, event_id).status == EventStatus.pending

    def test_garbage_token_is_anonymous(self, client, database):
        _, _, _, _, event_id = _setup(database)
        resp = client.post(f"/api/events/{event_id}/approve", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_unknown_event_is_not_found(self, client, settings, database):
        admin, *_ = _setup(database)
        resp = client.post("/api/events/does-not-exist/approve", headers=auth_headers(settings, admin))
        assert resp.status_code == 404
        assert resp.json() == {"error": "not_found", "detail": "Event not found"}

    def test_moderator_completes_approved_event(self, client, settings, database):
        _, moderator, _, _, event_id = _setup(database, event_status=EventStatus.approved)
        resp = client.post(f"/api/events/{event_id}/complete", headers=auth_headers(settings, moderator))
        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"

    def test_complete_pending_event_conflicts(self, client, settings, database):
        _, moderator, _, _, event_id = _setup(database)
        resp = client.post(f"/api/events/{event_id}/complete", headers=auth_headers(settings, moderator))
        assert resp.status_code == 409

    def test_student_cannot_cancel_event(self, client, settings, database):
        _, _, student, _, event_id = _setup(database)
        resp = client.post(f"/api/events/{event_id}/cancel", headers=auth_headers(settings, student))
        assert resp.status_code == 403

    def test_approval_notifies_creator(self, client, settings, database):
        admin, _, student, _, event_id = _setup(database)
        client.post(f"/api/events/{event_id}/approve", headers=auth_headers(settings, admin))

        with database.session_factory() as session:
            notes = session.execute(
                select(Notification).where(Notification.user_id == student.user_id)
            ).scalars().all()
        assert [n.notification_type for n in notes] == ["event_approved"]
        assert notes[0].related_entity_id == event_id

    def test_rejection_is_logged_without_notifying(self, client, settings, database):
        admin, _, student, _, event_id = _setup(database)
        resp = client.post(f"/api/events/{event_id}/reject", headers=auth_headers(settings, admin))
        assert resp.status_code == 200

        with database.session_factory() as session:
            notes = session.execute(select(Notification)).scalars().all()
            actions = session.execute(
                select(ActivityLogEntry.action).where(ActivityLogEntry.entity_id == event_id)
            ).scalars().all()
        assert notes == []
        assert actions == ["event_rejected"]

    def test_coordinator_reports_conflict_directly(self, run_command, database):
        admin, _, _, _, event_id = _setup(database)
        run_command("approve_event", admin, event_id)
        with pytest.raises(ConflictError):
            run_command("approve_event", admin, event_id)


class TestNewsModeration:

    def test_publish_sets_published_at_once(self, client, settings, database):
        admin, _, student, club_id, _ = _setup(database)
        news_id = create_test_news(database, club_id, student.user_id)
        assert fetch(database, NewsPost, news_id).published_at is None

        headers = auth_headers(settings, admin)
        resp = client.post(f"/api/news/{news_id}/approve", headers=headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "published"
        published_at = fetch(database, NewsPost, news_id).published_at
        assert published_at is not None

        assert client.post(f"/api/news/{news_id}/approve", headers=headers).status_code == 409
        assert fetch(database, NewsPost, news_id).published_at == published_at

    def test_reject_leaves_published_at_empty(self, client, settings, database):
        admin, _, student, club_id, _ = _setup(database)
        news_id = create_test_news(database, club_id, student.user_id)
        resp = client.post(f"/api/news/{news_id}/reject", headers=auth_headers(settings, admin))
        assert resp.status_code == 200
        post = fetch(database, NewsPost, news_id)
        assert post.status == NewsStatus.rejected
        assert post.published_at is None

    def test_rejected_post_cannot_be_published(self, client, settings, database):
        admin, _, student, club_id, _ = _setup(database)
        news_id = create_test_news(database, club_id, student.user_id, status=NewsStatus.rejected)
        resp = client.post(f"/api/news/{news_id}/approve", headers=auth_headers(settings, admin))
        assert resp.status_code == 409

    def test_moderator_cannot_publish(self, client, settings, database):
        _, moderator, student, club_id, _ = _setup(database)
        news_id = create_test_news(database, club_id, student.user_id)
        resp = client.post(f"/api/news/{news_id}/approve", headers=auth_headers(settings, moderator))
        assert resp.status_code == 403
        assert fetch(database, NewsPost, news_id).status == NewsStatus.pending

    def test_only_published_news_is_listed(self, client, settings, database):
        admin, _, student, club_id, _ = _setup(database)
        published = create_test_news(database, club_id, student.user_id, title="Out now")
        create_test_news(database, club_id, student.user_id, title="Still pending")
        client.post(f"/api/news/{published}/approve", headers=auth_headers(settings, admin))

        titles = [p["title"] for p in client.get("/api/news/").json()]
        assert titles == ["Out now"]

    def test_publication_notifies_creator_but_rejection_does_not(self, client, settings, database):
        admin, _, student, club_id, _ = _setup(database)
        published = create_test_news(database, club_id, student.user_id, title="Out now")
        rejected = create_test_news(database, club_id, student.user_id, title="Not this one")
        headers = auth_headers(settings, admin)
        assert client.post(f"/api/news/{published}/approve", headers=headers).status_code == 200
        assert client.post(f"/api/news/{rejected}/reject", headers=headers).status_code == 200

        with database.session_factory() as session:
            notes = session.execute(
                select(Notification).where(Notification.user_id == student.user_id)
            ).scalars().all()
            rejected_log = session.execute(
                select(ActivityLogEntry.action).where(ActivityLogEntry.entity_id == rejected)
            ).scalars().all()
        assert [(n.notification_type, n.related_entity_id) for n in notes] == [("news_published", published)]
        assert rejected_log == ["news_rejected"]

    def test_news_moderation_uses_post(self, client, settings, database):
        admin, _, student, club_id, _ = _setup(database)
        news_id = create_test_news(database, club_id, student.user_id)
        resp = client.put(f"/api/news/{news_id}/approve", headers=auth_headers(settings, admin))
        assert resp.status_code == 405
        assert fetch(database, NewsPost, news_id).status == NewsStatus.pending
