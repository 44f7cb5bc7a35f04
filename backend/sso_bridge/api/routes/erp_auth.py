import logging
from collections.abc import Mapping

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from sso_bridge.core.auth import CurrentUser, get_current_user
from sso_bridge.core.config import get_settings
from sso_bridge.db.session import get_db
from sso_bridge.schemas.sso import AuthUrlResponse, SsoUserResponse, ValidateTokenResponse
from sso_bridge.services.sso_service import build_bridge, set_flash
from sso_bridge.sso import FailureReason, IssuanceError, MalformedInput, ResolvedIdentity, SsoOutcome

log = logging.getLogger(__name__)

router = APIRouter(prefix="")
settings = get_settings()

_EMAIL_LOGIN_FLASH = {
    FailureReason.MALFORMED_INPUT: "Invalid email address",
    FailureReason.IDENTITY_NOT_FOUND: "User not found",
    FailureReason.IDENTITY_NOT_ENABLED: "Your account is not enabled",
    FailureReason.SESSION_ESTABLISH_FAILED: "Failed to create user session",
}


def _email_login_flash(outcome: SsoOutcome) -> str:
    return _EMAIL_LOGIN_FLASH.get(outcome.reason, "Authentication failed")


def _identity_of(user: CurrentUser) -> ResolvedIdentity:
    return ResolvedIdentity(
        id=user.id,
        email=user.email,
        username=user.username,
        display_name=user.display_name,
        status=user.status,
    )


def _issuance_status(exc: IssuanceError | MalformedInput) -> int:
    if isinstance(exc, MalformedInput):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_503_SERVICE_UNAVAILABLE


_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def _posted_field(request: Request, name: str) -> str | None:
    """Read ``name`` from a form or JSON body; anything but a string reads as missing."""
    if request.headers.get("content-type", "").startswith(_FORM_TYPES):
        data = await request.form()
    else:
        try:
            data = await request.json()
        except ValueError:
            return None
    if not isinstance(data, Mapping):
        return None
    value = data.get(name)
    return value if isinstance(value, str) else None


async def posted_token(request: Request) -> str | None:
    return await _posted_field(request, "token")


async def posted_email(request: Request) -> str | None:
    return await _posted_field(request, "email")


def _login_by_email(user_email: str | None, db: Session) -> RedirectResponse:
    success = RedirectResponse(settings.dashboard_path, status_code=status.HTTP_302_FOUND)
    outcome = build_bridge(db, response=success).login_with_email(user_email)
    if outcome.ok:
        return success

    failure = RedirectResponse(settings.login_path, status_code=status.HTTP_302_FOUND)
    set_flash(failure, _email_login_flash(outcome))
    return failure


# Inbound by email: no possession proof, expose only on a network path trusted by the deployment.
@router.get("/auth_user/{user_email}", name="auth_user_by_path")
def auth_user_by_path(user_email: str, db: Session = Depends(get_db)) -> RedirectResponse:
    return _login_by_email(user_email, db)


@router.get("/auth_user")
def auth_user_by_query(
    user_email: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    return _login_by_email(user_email, db)


@router.post("/api/auth/login", response_model=AuthUrlResponse, response_model_exclude_none=True)
def api_login(
    request: Request,
    email: str | None = Depends(posted_email),
    db: Session = Depends(get_db),
) -> AuthUrlResponse:
    outcome = build_bridge(db).check_email(email)
    if not outcome.ok:
        message = (
            "Invalid email address"
            if outcome.reason == FailureReason.MALFORMED_INPUT
            else "Authentication failed"
        )
        return AuthUrlResponse(status=False, message=message)

    identity = outcome.identity
    return AuthUrlResponse(
        status=True,
        message="Authentication successful",
        auth_url=str(request.url_for("auth_user_by_path", user_email=identity.email)),
        user=SsoUserResponse.from_identity(identity),
    )


@router.post(
    "/api/erp/validate-token",
    response_model=ValidateTokenResponse,
    response_model_exclude_none=True,
)
def validate_token(
    token: str | None = Depends(posted_token),
    db: Session = Depends(get_db),
) -> ValidateTokenResponse:
    if not token:
        return ValidateTokenResponse(status=False, message="Token is required")

    outcome = build_bridge(db).redeem(token)
    if not outcome.ok:
        return ValidateTokenResponse(status=False, message="Invalid or expired token")

    return ValidateTokenResponse(status=True, user=SsoUserResponse.from_identity(outcome.identity))


@router.get("/erp/auth-url", response_model=AuthUrlResponse, response_model_exclude_none=True)
def erp_auth_url(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    identity = _identity_of(user)
    try:
        auth_url = build_bridge(db).issue_auth_url(identity)
    except (IssuanceError, MalformedInput) as exc:
        log.error("ERP SSO: could not issue auth URL for user %s: %s", user.id, exc)
        return JSONResponse(
            status_code=_issuance_status(exc),
            content={"status": False, "message": exc.public_message},
        )

    return AuthUrlResponse(
        status=True,
        message="Authentication successful",
        auth_url=auth_url,
        user=SsoUserResponse.from_identity(identity),
    )


@router.get("/erp/redirect")
def erp_redirect(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    try:
        auth_url = build_bridge(db).issue_auth_url(_identity_of(user))
    except (IssuanceError, MalformedInput) as exc:
        log.error("ERP SSO: could not issue auth URL for user %s: %s", user.id, exc)
        raise HTTPException(status_code=_issuance_status(exc), detail=exc.public_message) from exc
    return RedirectResponse(auth_url, status_code=status.HTTP_302_FOUND)
