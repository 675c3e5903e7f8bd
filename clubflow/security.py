"""Identity context: bearer JWT decoding and role capability checks.

Token issuance proper (login, password checks) lives outside this service;
``create_access_token`` exists so operators and tests can mint tokens that
the decoder accepts.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clubflow.config import Settings
from clubflow.errors import AuthenticationError, AuthorizationError
from clubflow.models.user import Role

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: Role


def has_role(identity: Optional[Identity], allowed_roles: Iterable[Role]) -> bool:
    """Exact membership test; roles do not imply one another."""
    if identity is None:
        return False
    return identity.role in frozenset(allowed_roles)


def current_user_id(identity: Optional[Identity]) -> str:
    if identity is None:
        raise AuthenticationError("User not authenticated")
    return identity.user_id


def create_access_token(
    settings: Settings,
    user_id: str,
    role: Role,
    expires_delta: Optional[timedelta] = None,
) -> str:
    now = datetime.now(timezone.utc)
    expires = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        "sub": str(user_id),
        "role": Role(role).value,
        "iat": int(now.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(settings: Settings, token: str) -> Identity:
    """Decode a token into an Identity; any defect is an AuthenticationError."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "role", "exp", "iat"]},
        )
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid or expired token") from exc

    try:
        role = Role(payload["role"])
    except ValueError as exc:
        raise AuthenticationError("Invalid or expired token") from exc
    return Identity(user_id=str(payload["sub"]), role=role)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Optional[Identity]:
    """Resolve the caller, or None when no valid bearer token was sent.

    Rejecting anonymous callers is the coordinator's job, so a bad token is
    treated the same as a missing one here.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    try:
        return decode_access_token(settings, credentials.credentials)
    except AuthenticationError:
        logger.info("Ignoring invalid bearer token")
        return None


def require_identity(identity: Optional[Identity] = Depends(optional_identity)) -> Identity:
    if identity is None:
        raise AuthenticationError("User not authenticated")
    return identity


def require_roles(*roles: Role):
    """Dependency factory for read endpoints gated to an exact set of roles."""
    allowed = frozenset(roles)

    def _dependency(identity: Identity = Depends(require_identity)) -> Identity:
        if not has_role(identity, allowed):
            raise AuthorizationError("Insufficient permissions")
        return identity

    return _dependency
