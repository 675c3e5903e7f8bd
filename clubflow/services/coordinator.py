"""Workflow coordinator: the single entry point for every state-changing command.

Each command runs the same steps:

1. require an identity and check its role against the command's allow-list;
2. delegate to the moderation state machine, the registration engine or
   the club membership service;
3. commit, mapping storage failures to workflow error kinds;
4. queue activity-log and notification hooks, which run only after commit.
"""
import enum
import logging
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clubflow.errors import AuthenticationError, AuthorizationError, ConflictError, StorageError, WorkflowError
from clubflow.models.club import Club
from clubflow.models.event import Event
from clubflow.models.feedback import EventFeedback
from clubflow.models.membership import ClubMember, ClubModerator
from clubflow.models.news import NewsPost
from clubflow.models.registration import EventRegistration, RegistrationStatus
from clubflow.models.user import Role
from clubflow.security import Identity, has_role
from clubflow.services import club_service, event_service, news_service, registration
from clubflow.services.moderation import ModerationAction, transition_event, transition_news
from clubflow.services.side_effects import PostCommitHooks, SideEffectPipeline

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Command(str, enum.Enum):
    create_event = "create_event"
    approve_event = "approve_event"
    reject_event = "reject_event"
    complete_event = "complete_event"
    cancel_event = "cancel_event"
    register = "register"
    cancel_registration = "cancel_registration"
    mark_attendance = "mark_attendance"
    submit_feedback = "submit_feedback"
    create_news = "create_news"
    approve_news = "approve_news"
    reject_news = "reject_news"
    join_club = "join_club"
    leave_club = "leave_club"
    assign_moderator = "assign_moderator"
    remove_moderator = "remove_moderator"
    activate_club = "activate_club"
    deactivate_club = "deactivate_club"


ANY_ROLE = frozenset(Role)
ADMIN_ONLY = frozenset({Role.system_admin})
STAFF = frozenset({Role.club_moderator, Role.system_admin})

# Exact-match allow-lists. A role not listed for a command may not run it.
COMMAND_ROLES: dict[Command, frozenset[Role]] = {
    Command.create_event: ANY_ROLE,
    Command.approve_event: ADMIN_ONLY,
    Command.reject_event: ADMIN_ONLY,
    Command.complete_event: STAFF,
    Command.cancel_event: STAFF,
    Command.register: ANY_ROLE,
    Command.cancel_registration: ANY_ROLE,
    Command.mark_attendance: STAFF,
    Command.submit_feedback: ANY_ROLE,
    Command.create_news: ANY_ROLE,
    Command.approve_news: ADMIN_ONLY,
    Command.reject_news: ADMIN_ONLY,
    Command.join_club: ANY_ROLE,
    Command.leave_club: ANY_ROLE,
    Command.assign_moderator: ADMIN_ONLY,
    Command.remove_moderator: ADMIN_ONLY,
    Command.activate_club: ADMIN_ONLY,
    Command.deactivate_club: ADMIN_ONLY,
}

_EVENT_ACTIONS = {
    Command.approve_event: (ModerationAction.approve, "event_approved"),
    Command.reject_event: (ModerationAction.reject, "event_rejected"),
    Command.complete_event: (ModerationAction.complete, "event_completed"),
    Command.cancel_event: (ModerationAction.cancel, "event_cancelled"),
}

_NEWS_ACTIONS = {
    Command.approve_news: (ModerationAction.approve, "news_published"),
    Command.reject_news: (ModerationAction.reject, "news_rejected"),
}

_EVENT_NOTICES = {
    "event_approved": ("Event approved", "Your event '{title}' has been approved."),
    "event_cancelled": ("Event cancelled", "Your event '{title}' has been cancelled."),
}

_NEWS_NOTICES = {
    "news_published": ("News published", "Your post '{title}' is now published."),
}


def authorize(identity: Optional[Identity], command: Command) -> Identity:
    if identity is None:
        raise AuthenticationError("User not authenticated")
    if not has_role(identity, COMMAND_ROLES[command]):
        raise AuthorizationError(f"Role '{identity.role.value}' may not {command.value.replace('_', ' ')}")
    return identity


class WorkflowCoordinator:
    """Runs commands against one session; side effects go to ``hooks``.

    ``hooks`` is filled only after a successful commit. The HTTP layer runs it
    as a background task; direct callers run ``hooks.run()`` themselves.
    """

    def __init__(self, db: Session, pipeline: SideEffectPipeline, hooks: Optional[PostCommitHooks] = None):
        self.db = db
        self.pipeline = pipeline
        self.hooks = hooks if hooks is not None else PostCommitHooks()

    # ── plumbing ───────────────────────────────────────────────────────

    def _execute(self, work: Callable[[], T]) -> T:
        """Run ``work`` and commit it as one unit, or roll it back entirely."""
        try:
            result = work()
            self.db.commit()
        except WorkflowError:
            self.db.rollback()
            raise
        except IntegrityError as exc:
            self.db.rollback()
            logger.info("Integrity conflict: %s", exc.orig)
            raise ConflictError("The request conflicts with an existing record") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Storage failure, command rolled back")
            raise StorageError() from exc
        return result

    def _log(self, user_id: str, action: str, entity_type: str, entity_id: str,
             details: Optional[dict[str, Any]] = None) -> None:
        self.hooks.add(self.pipeline.log_activity, user_id, action, entity_type, entity_id, details)

    def _notify(self, user_id: str, notice: tuple[str, str], notification_type: str,
                entity_type: str, entity_id: str, **fmt: Any) -> None:
        title, template = notice
        self.hooks.add(
            self.pipeline.notify, user_id, title, template.format(**fmt),
            notification_type, entity_type, entity_id,
        )

    # ── events ─────────────────────────────────────────────────────────

    def create_event(
        self,
        identity: Optional[Identity],
        club_id: str,
        title: str,
        start_datetime: datetime,
        end_datetime: datetime,
        capacity: int = 0,
        **fields: Any,
    ) -> Event:
        actor = authorize(identity, Command.create_event)
        event = self._execute(lambda: event_service.create_event(
            self.db,
            club_id=club_id,
            created_by=actor.user_id,
            title=title,
            start_datetime=start_datetime,
            end_datetime=end_datetime,
            capacity=capacity,
            **fields,
        ))
        self._log(actor.user_id, "event_created", "event", event.event_id, {"title": title})
        return event

    def _moderate_event(self, identity: Optional[Identity], command: Command, event_id: str) -> Event:
        actor = authorize(identity, command)
        action, log_action = _EVENT_ACTIONS[command]
        event, previous = self._execute(lambda: transition_event(self.db, event_id, action))
        self._log(actor.user_id, log_action, "event", event.event_id,
                  {"from": previous.value, "to": event.status.value})
        notice = _EVENT_NOTICES.get(log_action)
        if notice is not None:
            self._notify(event.created_by, notice, log_action, "event", event.event_id, title=event.title)
        return event

    def approve_event(self, identity: Optional[Identity], event_id: str) -> Event:
        return self._moderate_event(identity, Command.approve_event, event_id)

    def reject_event(self, identity: Optional[Identity], event_id: str) -> Event:
        return self._moderate_event(identity, Command.reject_event, event_id)

    def complete_event(self, identity: Optional[Identity], event_id: str) -> Event:
        return self._moderate_event(identity, Command.complete_event, event_id)

    def cancel_event(self, identity: Optional[Identity], event_id: str) -> Event:
        return self._moderate_event(identity, Command.cancel_event, event_id)

    # ── registrations ──────────────────────────────────────────────────

    def register(self, identity: Optional[Identity], event_id: str) -> EventRegistration:
        actor = authorize(identity, Command.register)
        outcome = self._execute(lambda: registration.register(self.db, event_id, actor.user_id))
        reg = outcome.registration
        self._log(actor.user_id, "event_registered", "event", event_id, {"status": reg.status.value})
        if outcome.changed:
            if reg.status == RegistrationStatus.confirmed:
                notice = ("Registration confirmed", "You have a confirmed place for this event.")
                notification_type = "registration_confirmation"
            else:
                notice = ("Added to waitlist", "The event is full; you have been added to the waitlist.")
                notification_type = "registration_waitlisted"
            self._notify(actor.user_id, notice, notification_type, "event", event_id)
        return reg

    def cancel_registration(self, identity: Optional[Identity], event_id: str) -> EventRegistration:
        actor = authorize(identity, Command.cancel_registration)
        outcome = self._execute(lambda: registration.cancel(self.db, event_id, actor.user_id))
        if outcome.changed:
            self._log(actor.user_id, "event_registration_cancelled", "event", event_id,
                      {"previous_status": outcome.previous_status.value})
        return outcome.registration

    def mark_attendance(self, identity: Optional[Identity], event_id: str, user_id: str) -> EventRegistration:
        actor = authorize(identity, Command.mark_attendance)
        reg, changed = self._execute(lambda: registration.mark_attendance(self.db, event_id, user_id))
        if changed:
            self._log(actor.user_id, "attendance_marked", "event", event_id, {"user_id": user_id})
        return reg

    def submit_feedback(
        self,
        identity: Optional[Identity],
        event_id: str,
        rating: int,
        comment: Optional[str] = None,
    ) -> EventFeedback:
        actor = authorize(identity, Command.submit_feedback)
        feedback, created = self._execute(
            lambda: registration.submit_feedback(self.db, event_id, actor.user_id, rating, comment)
        )
        self._log(actor.user_id, "feedback_submitted", "event", event_id,
                  {"rating": rating, "updated": not created})
        return feedback

    # ── news ───────────────────────────────────────────────────────────

    def create_news(
        self,
        identity: Optional[Identity],
        club_id: str,
        title: str,
        content: str,
        category: Optional[str] = None,
        is_featured: bool = False,
    ) -> NewsPost:
        actor = authorize(identity, Command.create_news)
        post = self._execute(lambda: news_service.create_news(
            self.db,
            club_id=club_id,
            created_by=actor.user_id,
            title=title,
            content=content,
            category=category,
            is_featured=is_featured,
        ))
        self._log(actor.user_id, "news_created", "news", post.news_id, {"title": title})
        return post

    def _moderate_news(self, identity: Optional[Identity], command: Command, news_id: str) -> NewsPost:
        actor = authorize(identity, command)
        action, log_action = _NEWS_ACTIONS[command]
        post, previous = self._execute(lambda: transition_news(self.db, news_id, action))
        self._log(actor.user_id, log_action, "news", post.news_id,
                  {"from": previous.value, "to": post.status.value})
        notice = _NEWS_NOTICES.get(log_action)
        if notice is not None:
            self._notify(post.created_by, notice, log_action, "news", post.news_id, title=post.title)
        return post

    def approve_news(self, identity: Optional[Identity], news_id: str) -> NewsPost:
        return self._moderate_news(identity, Command.approve_news, news_id)

    def reject_news(self, identity: Optional[Identity], news_id: str) -> NewsPost:
        return self._moderate_news(identity, Command.reject_news, news_id)

    # ── clubs ──────────────────────────────────────────────────────────

    def join_club(self, identity: Optional[Identity], club_id: str) -> ClubMember:
        actor = authorize(identity, Command.join_club)
        membership, changed = self._execute(lambda: club_service.join_club(self.db, club_id, actor.user_id))
        if changed:
            self._log(actor.user_id, "club_joined", "club", club_id)
        return membership

    def leave_club(self, identity: Optional[Identity], club_id: str) -> ClubMember:
        actor = authorize(identity, Command.leave_club)
        membership = self._execute(lambda: club_service.leave_club(self.db, club_id, actor.user_id))
        self._log(actor.user_id, "club_left", "club", club_id)
        return membership

    def assign_moderator(self, identity: Optional[Identity], club_id: str, user_id: str) -> ClubModerator:
        actor = authorize(identity, Command.assign_moderator)
        assignment, created = self._execute(lambda: club_service.assign_moderator(self.db, club_id, user_id))
        if created:
            self._log(actor.user_id, "moderator_assigned", "club", club_id, {"user_id": user_id})
        return assignment

    def remove_moderator(self, identity: Optional[Identity], club_id: str, user_id: str) -> None:
        actor = authorize(identity, Command.remove_moderator)
        self._execute(lambda: club_service.remove_moderator(self.db, club_id, user_id))
        self._log(actor.user_id, "moderator_removed", "club", club_id, {"user_id": user_id})

    def _set_club_active(self, identity: Optional[Identity], command: Command, club_id: str, active: bool) -> Club:
        actor = authorize(identity, command)
        club, changed = self._execute(lambda: club_service.set_club_active(self.db, club_id, active))
        if changed:
            self._log(actor.user_id, "club_activated" if active else "club_deactivated", "club", club_id)
        return club

    def activate_club(self, identity: Optional[Identity], club_id: str) -> Club:
        return self._set_club_active(identity, Command.activate_club, club_id, True)

    def deactivate_club(self, identity: Optional[Identity], club_id: str) -> Club:
        return self._set_club_active(identity, Command.deactivate_club, club_id, False)
