"""Activity log queries: own history, one user's history, or everything."""
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from clubflow.database import get_db
from clubflow.errors import AuthorizationError
from clubflow.models.activity_log import ActivityLogEntry
from clubflow.models.user import Role
from clubflow.schemas.activity import ActivityLogOut
from clubflow.security import Identity, require_identity, require_roles

router = APIRouter()

USER_LOG_LIMIT = 100
GLOBAL_LOG_LIMIT = 500


def _user_log(db: Session, user_id: str):
    return db.execute(
        select(ActivityLogEntry)
        .where(ActivityLogEntry.user_id == user_id)
        .order_by(ActivityLogEntry.created_at.desc())
        .limit(USER_LOG_LIMIT)
    ).scalars().all()


@router.get("/me", response_model=list[ActivityLogOut])
def my_activity(identity: Identity = Depends(require_identity), db: Session = Depends(get_db)):
    return _user_log(db, identity.user_id)


@router.get("/user/{user_id}", response_model=list[ActivityLogOut])
def user_activity(
    user_id: str,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """A user's own log; administrators may read anyone's."""
    if identity.user_id != user_id and identity.role != Role.system_admin:
        raise AuthorizationError("Only system admins can view other users' activity")
    return _user_log(db, user_id)


@router.get("/all", response_model=list[ActivityLogOut])
def all_activity(
    _: Identity = Depends(require_roles(Role.system_admin)),
    db: Session = Depends(get_db),
):
    return db.execute(
        select(ActivityLogEntry).order_by(ActivityLogEntry.created_at.desc()).limit(GLOBAL_LOG_LIMIT)
    ).scalars().all()
