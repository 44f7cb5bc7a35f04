from __future__ import annotations

import logging

from fastapi import Response
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sso_bridge.core.auth import create_session, set_session_cookie
from sso_bridge.models import SessionSource, User, UserStatus
from sso_bridge.sso.identity import ResolvedIdentity

log = logging.getLogger(__name__)


def to_resolved_identity(user: User) -> ResolvedIdentity:
    return ResolvedIdentity(
        id=user.id,
        email=user.email,
        username=user.username,
        display_name=user.display_name or user.username,
        status=UserStatus(user.status),
    )


class SqlIdentityResolver:
    def __init__(self, db: Session) -> None:
        self._db = db

    def resolve(self, email: str) -> ResolvedIdentity | None:
        user = self._db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
        if not user:
            return None
        log.info("ERP Auth: user found - id=%s username=%s status=%s", user.id, user.username, user.status)
        return to_resolved_identity(user)


class CookieSessionEstablisher:
    """Opens a host session for an ERP-authenticated identity.

    The signed session cookie is written onto ``response``, which must be the
    response object the route finally returns.
    """

    def __init__(self, db: Session, response: Response) -> None:
        self._db = db
        self._response = response

    def establish(self, identity: ResolvedIdentity) -> bool:
        try:
            session_token = create_session(self._db, identity.id, source=SessionSource.ERP)
        except SQLAlchemyError:
            self._db.rollback()
            log.exception("ERP Auth: failed to persist session for user %s", identity.id)
            return False
        set_session_cookie(self._response, session_token)
        return True
