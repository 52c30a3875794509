"""
Caller resolution.

Authentication happens in front of this service; the authenticated
principal arrives in the ``X-Username`` header. Roles live in the
``authorities`` table and are resolved here into a ``CallerContext`` that is
passed explicitly to every engine call.
"""

from typing import Optional

import structlog
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .db.base import get_db, session_scope
from .db.models import AuthorityModel
from .issues.schemas import CallerContext, Role

logger = structlog.get_logger(__name__)


class AuthorityService:
    """Service for looking up and granting user roles."""

    def __init__(self, db: Session):
        self.db = db

    def find_role(self, username: str) -> Optional[Role]:
        """Return the user's role, or None if the user has none."""
        authority = (
            self.db.query(AuthorityModel)
            .filter(AuthorityModel.username == username)
            .first()
        )
        return Role(authority.authority) if authority else None

    def grant(self, username: str, role: Role) -> AuthorityModel:
        """Grant ``role`` to ``username``, replacing any previous role."""
        with session_scope(self.db):
            authority = self.db.get(AuthorityModel, username)
            if authority is None:
                authority = AuthorityModel(username=username, authority=role.value)
                self.db.add(authority)
            else:
                authority.authority = role.value
        logger.info("authority_granted", username=username, role=role.value)
        return authority


def get_caller(
    x_username: Optional[str] = Header(default=None, alias="X-Username"),
    db: Session = Depends(get_db),
) -> CallerContext:
    """Resolve the calling user into a CallerContext.

    Raises:
        HTTPException 401: If no principal was forwarded.
        HTTPException 403: If the principal has no role.
    """
    username = (x_username or "").strip()
    if not username:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "AUTHENTICATION_REQUIRED",
                "message": "X-Username header is required",
            },
        )

    role = AuthorityService(db).find_role(username)
    if role is None:
        logger.warning("auth_failed", reason="no_authority", username=username)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "NO_ROLE",
                "message": f"User '{username}' has no role in this community",
            },
        )

    return CallerContext(role=role, username=username)
