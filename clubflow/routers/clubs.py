"""Club API routes."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clubflow.database import get_db
from clubflow.dependencies import get_coordinator, get_post_commit_hooks, get_side_effects
from clubflow.errors import ConflictError, NotFoundError
from clubflow.models.club import Club
from clubflow.models.user import Role
from clubflow.schemas.club import (
    ClubCreate,
    ClubOut,
    MemberOut,
    MembershipOut,
    ModeratorAssign,
    ModeratorAssignmentOut,
    ModeratorOut,
)
from clubflow.security import Identity, optional_identity, require_roles
from clubflow.services import club_service
from clubflow.services.coordinator import WorkflowCoordinator
from clubflow.services.side_effects import PostCommitHooks, SideEffectPipeline

logger = logging.getLogger(__name__)
router = APIRouter()


def _code_taken(db: Session, club_code: str) -> bool:
    return db.execute(select(Club.club_id).where(Club.club_code == club_code)).first() is not None


@router.post("/", response_model=ClubOut, status_code=status.HTTP_201_CREATED)
def create_club(
    payload: ClubCreate,
    identity: Identity = Depends(require_roles(Role.system_admin)),
    db: Session = Depends(get_db),
    side_effects: SideEffectPipeline = Depends(get_side_effects),
    hooks: PostCommitHooks = Depends(get_post_commit_hooks),
):
    """Create a club (system admin). Club codes are unique."""
    if _code_taken(db, payload.club_code):
        raise ConflictError("Club code is already in use")

    club = Club(**payload.model_dump())
    db.add(club)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent create of the same code.
        db.rollback()
        raise ConflictError("Club code is already in use") from exc
    db.refresh(club)
    logger.info("Created club '%s' (%s)", club.club_name, club.club_id)
    hooks.add(
        side_effects.log_activity, identity.user_id, "club_created", "club", club.club_id,
        {"club_code": club.club_code},
    )
    return club


@router.get("/", response_model=list[ClubOut])
def list_clubs(db: Session = Depends(get_db)):
    """List active clubs by name."""
    return db.execute(select(Club).where(Club.is_active.is_(True)).order_by(Club.club_name)).scalars().all()


@router.get("/{club_id}", response_model=ClubOut)
def get_club(club_id: str, db: Session = Depends(get_db)):
    club = db.get(Club, club_id)
    if not club:
        raise NotFoundError("Club not found")
    return club


@router.post("/{club_id}/activate", response_model=ClubOut)
def activate_club(
    club_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    return coordinator.activate_club(identity, club_id)


@router.post("/{club_id}/deactivate", response_model=ClubOut)
def deactivate_club(
    club_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Hide a club from listings and stop it taking new members (system admin)."""
    return coordinator.deactivate_club(identity, club_id)


# ── membership ─────────────────────────────────────────────────────────

@router.post("/{club_id}/join", response_model=MembershipOut)
def join_club(
    club_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Join a club. Joining again after leaving reactivates the membership."""
    return coordinator.join_club(identity, club_id)


@router.post("/{club_id}/leave", response_model=MembershipOut)
def leave_club(
    club_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    return coordinator.leave_club(identity, club_id)


@router.get("/{club_id}/members", response_model=list[MemberOut])
def list_members(club_id: str, db: Session = Depends(get_db)):
    return [
        MemberOut(
            user_id=user.user_id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            member_role=member.member_role,
            joined_at=member.joined_at,
        )
        for member, user in club_service.list_members(db, club_id)
    ]


# ── moderators ─────────────────────────────────────────────────────────

@router.get("/{club_id}/moderators", response_model=list[ModeratorOut])
def list_moderators(club_id: str, db: Session = Depends(get_db)):
    return [
        ModeratorOut(
            user_id=user.user_id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            assigned_at=assignment.assigned_at,
        )
        for assignment, user in club_service.list_moderators(db, club_id)
    ]


@router.post("/{club_id}/moderators", response_model=ModeratorAssignmentOut)
def assign_moderator(
    club_id: str,
    payload: ModeratorAssign,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    """Assign a user as club moderator (system admin). Assigning twice is a no-op."""
    return coordinator.assign_moderator(identity, club_id, payload.user_id)


@router.delete("/{club_id}/moderators/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_moderator(
    club_id: str,
    user_id: str,
    identity: Optional[Identity] = Depends(optional_identity),
    coordinator: WorkflowCoordinator = Depends(get_coordinator),
):
    coordinator.remove_moderator(identity, club_id, user_id)
