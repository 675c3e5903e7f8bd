"""Club membership, moderator assignment and club activation.

Joining is an upsert on (club, user): leaving deactivates the membership row
and joining again reactivates it with a fresh ``joined_at``. Inserts run in a
savepoint so that losing a race to a concurrent insert of the same pair
falls back to the row the winner wrote.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clubflow.errors import ConflictError, NotFoundError
from clubflow.models.club import Club
from clubflow.models.membership import ClubMember, ClubModerator
from clubflow.models.user import User

logger = logging.getLogger(__name__)


def _get_club(db: Session, club_id: str) -> Club:
    club = db.get(Club, club_id, populate_existing=True)
    if club is None:
        raise NotFoundError("Club not found")
    return club


def _find_membership(db: Session, club_id: str, user_id: str) -> Optional[ClubMember]:
    return db.execute(
        select(ClubMember)
        .where(ClubMember.club_id == club_id, ClubMember.user_id == user_id)
        .execution_options(populate_existing=True)
        .with_for_update()
    ).scalar_one_or_none()


def _find_assignment(db: Session, club_id: str, user_id: str) -> Optional[ClubModerator]:
    return db.execute(
        select(ClubModerator)
        .where(ClubModerator.club_id == club_id, ClubModerator.user_id == user_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def join_club(db: Session, club_id: str, user_id: str) -> tuple[ClubMember, bool]:
    """Make ``user_id`` an active member. Returns (membership, changed)."""
    club = _get_club(db, club_id)
    if not club.is_active:
        raise ConflictError("Club is not accepting members")

    membership = _find_membership(db, club_id, user_id)
    if membership is None:
        try:
            with db.begin_nested():
                membership = ClubMember(club_id=club_id, user_id=user_id)
                db.add(membership)
                db.flush()
        except IntegrityError:
            membership = _find_membership(db, club_id, user_id)
            if membership is None:
                raise
        else:
            logger.info("User %s joined club %s", user_id, club_id)
            return membership, True

    if membership.is_active:
        return membership, False

    result = db.execute(
        update(ClubMember)
        .where(ClubMember.membership_id == membership.membership_id, ClubMember.is_active.is_(False))
        .values(is_active=True, joined_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    db.refresh(membership)
    if result.rowcount == 1:
        logger.info("User %s rejoined club %s", user_id, club_id)
    return membership, result.rowcount == 1


def leave_club(db: Session, club_id: str, user_id: str) -> ClubMember:
    _get_club(db, club_id)
    membership = _find_membership(db, club_id, user_id)
    if membership is None or not membership.is_active:
        raise NotFoundError("Not a member of this club")

    result = db.execute(
        update(ClubMember)
        .where(ClubMember.membership_id == membership.membership_id, ClubMember.is_active.is_(True))
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise NotFoundError("Not a member of this club")
    db.refresh(membership)
    logger.info("User %s left club %s", user_id, club_id)
    return membership


def assign_moderator(db: Session, club_id: str, user_id: str) -> tuple[ClubModerator, bool]:
    """Assign a moderator to a club. Assigning twice is a no-op."""
    _get_club(db, club_id)
    if db.get(User, user_id) is None:
        raise NotFoundError("User not found")

    assignment = _find_assignment(db, club_id, user_id)
    if assignment is not None:
        return assignment, False
    try:
        with db.begin_nested():
            assignment = ClubModerator(club_id=club_id, user_id=user_id)
            db.add(assignment)
            db.flush()
    except IntegrityError:
        assignment = _find_assignment(db, club_id, user_id)
        if assignment is None:
            raise
        return assignment, False
    logger.info("Assigned user %s as moderator of club %s", user_id, club_id)
    return assignment, True


def remove_moderator(db: Session, club_id: str, user_id: str) -> None:
    _get_club(db, club_id)
    result = db.execute(
        delete(ClubModerator).where(ClubModerator.club_id == club_id, ClubModerator.user_id == user_id)
    )
    if result.rowcount != 1:
        raise NotFoundError("User is not a moderator of this club")
    logger.info("Removed user %s as moderator of club %s", user_id, club_id)


def set_club_active(db: Session, club_id: str, active: bool) -> tuple[Club, bool]:
    """Activate or deactivate a club. Returns (club, changed)."""
    club = _get_club(db, club_id)
    result = db.execute(
        update(Club)
        .where(Club.club_id == club_id, Club.is_active.is_(not active))
        .values(is_active=active)
        .execution_options(synchronize_session=False)
    )
    db.refresh(club)
    changed = result.rowcount == 1
    if changed:
        logger.info("Club %s %s", club_id, "activated" if active else "deactivated")
    return club, changed


def list_members(db: Session, club_id: str) -> list[tuple[ClubMember, User]]:
    """Active members with their user rows, earliest joiner first."""
    _get_club(db, club_id)
    return db.execute(
        select(ClubMember, User)
        .join(User, User.user_id == ClubMember.user_id)
        .where(ClubMember.club_id == club_id, ClubMember.is_active.is_(True))
        .order_by(ClubMember.joined_at)
    ).all()


def list_moderators(db: Session, club_id: str) -> list[tuple[ClubModerator, User]]:
    _get_club(db, club_id)
    return db.execute(
        select(ClubModerator, User)
        .join(User, User.user_id == ClubModerator.user_id)
        .where(ClubModerator.club_id == club_id)
        .order_by(ClubModerator.assigned_at)
    ).all()


def list_user_clubs(db: Session, user_id: str) -> list[tuple[ClubMember, Club]]:
    """Clubs a user is an active member of, by club name."""
    if db.get(User, user_id) is None:
        raise NotFoundError("User not found")
    return db.execute(
        select(ClubMember, Club)
        .join(Club, Club.club_id == ClubMember.club_id)
        .where(ClubMember.user_id == user_id, ClubMember.is_active.is_(True))
        .order_by(Club.club_name)
    ).all()
