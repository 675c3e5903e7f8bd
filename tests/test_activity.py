"""Tests for activity log queries and the admin review queues."""
from clubflow.models.event import EventStatus
from clubflow.models.news import NewsStatus
from clubflow.models.user import Role
from tests.conftest import (
    auth_headers,
    create_test_club,
    create_test_event,
    create_test_news,
    create_test_user,
)


class TestActivityLog:

    def test_my_log_newest_first(self, client, settings, database, pipeline):
        me = create_test_user(database)
        pipeline.log_activity(me.user_id, "first", "event", "e-1")
        pipeline.log_activity(me.user_id, "second", "event", "e-2")

        resp = client.get("/api/activity/me", headers=auth_headers(settings, me))
        assert resp.status_code == 200
        assert [e["action"] for e in resp.json()] == ["second", "first"]

    def test_reading_someone_else_requires_admin(self, client, settings, database, pipeline):
        me = create_test_user(database)
        other = create_test_user(database)
        pipeline.log_activity(other.user_id, "private", "event", "e-1")

        resp = client.get(f"/api/activity/user/{other.user_id}", headers=auth_headers(settings, me))
        assert resp.status_code == 403

        admin = create_test_user(database, role=Role.system_admin)
        resp = client.get(f"/api/activity/user/{other.user_id}", headers=auth_headers(settings, admin))
        assert [e["action"] for e in resp.json()] == ["private"]

    def test_global_log_is_admin_only(self, client, settings, database, pipeline):
        me = create_test_user(database, role=Role.club_moderator)
        pipeline.log_activity(me.user_id, "something", "event", "e-1")

        assert client.get("/api/activity/all", headers=auth_headers(settings, me)).status_code == 403
        admin = create_test_user(database, role=Role.system_admin)
        resp = client.get("/api/activity/all", headers=auth_headers(settings, admin))
        assert resp.status_code == 200
        assert len(resp.json()) == 1

    def test_commands_show_up_in_the_log(self, client, settings, database):
        admin = create_test_user(database, role=Role.system_admin)
        creator = create_test_user(database)
        event_id = create_test_event(database, create_test_club(database), creator.user_id,
                                     status=EventStatus.pending)
        client.post(f"/api/events/{event_id}/approve", headers=auth_headers(settings, admin))

        entries = client.get("/api/activity/me", headers=auth_headers(settings, admin)).json()
        assert entries[0]["action"] == "event_approved"
        assert entries[0]["details"] == {"from": "pending", "to": "approved"}


class TestAdminQueues:

    def test_pending_queues(self, client, settings, database):
        admin = create_test_user(database, role=Role.system_admin)
        creator = create_test_user(database)
        club_id = create_test_club(database)
        pending_event = create_test_event(database, club_id, creator.user_id, status=EventStatus.pending)
        create_test_event(database, club_id, creator.user_id, status=EventStatus.approved)
        pending_news = create_test_news(database, club_id, creator.user_id)
        create_test_news(database, club_id, creator.user_id, status=NewsStatus.published)

        headers = auth_headers(settings, admin)
        events = client.get("/api/admin/events/pending", headers=headers).json()
        news = client.get("/api/admin/news/pending", headers=headers).json()
        assert [e["event_id"] for e in events] == [pending_event]
        assert [n["news_id"] for n in news] == [pending_news]

    def test_queues_need_admin(self, client, settings, database):
        moderator = create_test_user(database, role=Role.club_moderator)
        resp = client.get("/api/admin/events/pending", headers=auth_headers(settings, moderator))
        assert resp.status_code == 403
