from datetime import UTC, datetime, timedelta

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from sso_bridge.core.config import get_settings
from sso_bridge.core.security import SessionSigner
from sso_bridge.db.session import get_db
from sso_bridge.models import Session as UserSession
from sso_bridge.models import SessionSource, User, UserStatus

SESSION_COOKIE = "session_token"

settings = get_settings()
session_signer = SessionSigner()


class CurrentUser:
    def __init__(self, user: User, session: UserSession) -> None:
        self.id = user.id
        self.email = user.email
        self.username = user.username
        self.display_name = user.display_name or user.username
        self.status = UserStatus(user.status)
        self.session_id = session.id
        self.session_source = SessionSource(session.source)


def _as_aware_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def create_session(db: Session, user_id: str, source: SessionSource = SessionSource.LOCAL) -> str:
    user_session = UserSession(
        user_id=user_id,
        source=source,
        expires_at=datetime.now(UTC) + timedelta(seconds=settings.session_max_age_seconds),
    )
    db.add(user_session)
    db.commit()
    return session_signer.sign(user_session.id)


def set_session_cookie(response: Response, session_token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        max_age=settings.session_max_age_seconds,
    )


def get_current_user(request: Request, db: Session = Depends(get_db)) -> CurrentUser:
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        session_id = session_signer.unsign(token)
        if session_id:
            row = (
                db.query(UserSession, User)
                .join(User, User.id == UserSession.user_id)
                .filter(UserSession.id == session_id, User.status == UserStatus.ENABLED)
                .first()
            )
            if row:
                user_session, user = row
                if _as_aware_utc(user_session.expires_at) > datetime.now(UTC):
                    return CurrentUser(user, user_session)

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> CurrentUser | None:
    try:
        return get_current_user(request, db)
    except HTTPException:
        return None
