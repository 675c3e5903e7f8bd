"""User API routes."""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clubflow.database import get_db
from clubflow.dependencies import get_post_commit_hooks, get_side_effects
from clubflow.errors import ConflictError, NotFoundError
from clubflow.models.club import Club
from clubflow.models.event import Event
from clubflow.models.registration import EventRegistration, RegistrationStatus
from clubflow.models.user import Role, User
from clubflow.schemas.club import UserClubOut
from clubflow.schemas.registration import UserEventOut
from clubflow.schemas.user import RoleChange, UserCreate, UserOut
from clubflow.security import Identity, require_identity, require_roles
from clubflow.services import club_service
from clubflow.services.side_effects import PostCommitHooks, SideEffectPipeline

logger = logging.getLogger(__name__)
router = APIRouter()


def _identity_taken(db: Session, email: str, student_id: str) -> bool:
    return db.execute(
        select(User.user_id).where(or_(User.email == email, User.student_id == student_id))
    ).first() is not None


@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    """Create a student account. Credentials are managed by the identity provider."""
    if _identity_taken(db, payload.email, payload.student_id):
        raise ConflictError("A user with this email or student ID already exists")

    user = User(**payload.model_dump(), role=Role.student)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent sign-up for the same email or student ID.
        db.rollback()
        raise ConflictError("A user with this email or student ID already exists") from exc
    db.refresh(user)
    logger.info("Created user %s (%s)", user.user_id, user.email)
    return user


@router.get("/me", response_model=UserOut)
def get_me(identity: Identity = Depends(require_identity), db: Session = Depends(get_db)):
    user = db.get(User, identity.user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, db: Session = Depends(get_db)):
    """Fetch a single user by ID."""
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


@router.put("/{user_id}/role", response_model=UserOut)
def change_role(
    user_id: str,
    payload: RoleChange,
    identity: Identity = Depends(require_roles(Role.system_admin)),
    db: Session = Depends(get_db),
    side_effects: SideEffectPipeline = Depends(get_side_effects),
    hooks: PostCommitHooks = Depends(get_post_commit_hooks),
):
    """Change a user's role (system admin)."""
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    previous = user.role
    user.role = payload.role
    db.commit()
    db.refresh(user)
    logger.info("Changed role of user %s: %s -> %s", user_id, previous.value, user.role.value)
    hooks.add(
        side_effects.log_activity, identity.user_id, "user_role_changed", "user", user_id,
        {"from": previous.value, "to": user.role.value},
    )
    return user


@router.get("/{user_id}/events", response_model=list[UserEventOut])
def get_user_events(user_id: str, db: Session = Depends(get_db)):
    """Events a user holds a confirmed or waitlisted place for, latest start first."""
    if db.get(User, user_id) is None:
        raise NotFoundError("User not found")
    rows = db.execute(
        select(EventRegistration, Event, Club)
        .join(Event, Event.event_id == EventRegistration.event_id)
        .join(Club, Club.club_id == Event.club_id)
        .where(
            EventRegistration.user_id == user_id,
            EventRegistration.status != RegistrationStatus.cancelled,
        )
        .order_by(Event.start_datetime.desc())
    ).all()
    return [
        UserEventOut(
            event_id=event.event_id,
            title=event.title,
            start_datetime=event.start_datetime,
            location=event.location,
            club_name=club.club_name,
            club_code=club.club_code,
            status=reg.status,
            registered_at=reg.registered_at,
            attendance_marked=reg.attendance_marked,
        )
        for reg, event, club in rows
    ]


@router.get("/{user_id}/clubs", response_model=list[UserClubOut])
def get_user_clubs(user_id: str, db: Session = Depends(get_db)):
    """Clubs a user is an active member of."""
    return [
        UserClubOut(
            club_id=club.club_id,
            club_name=club.club_name,
            club_code=club.club_code,
            member_role=member.member_role,
            joined_at=member.joined_at,
        )
        for member, club in club_service.list_user_clubs(db, user_id)
    ]
