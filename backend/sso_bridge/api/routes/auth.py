from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from sso_bridge.core.auth import SESSION_COOKIE, CurrentUser, get_current_user, get_optional_user
from sso_bridge.core.config import get_settings
from sso_bridge.db.session import get_db
from sso_bridge.schemas.auth import MeResponse
from sso_bridge.schemas.sso import FlashMessage, LoginStateResponse
from sso_bridge.services.sso_service import build_bridge, get_erp_client, pop_flash
from sso_bridge.sso import ErpTokenClient

router = APIRouter(prefix="")
settings = get_settings()


@router.get("/auth/login", response_model=LoginStateResponse, response_model_exclude_none=True)
def login(
    request: Request,
    response: Response,
    erp_token: str | None = Query(default=None),
    user: CurrentUser | None = Depends(get_optional_user),
    erp_client: ErpTokenClient = Depends(get_erp_client),
    db: Session = Depends(get_db),
):
    if erp_token:
        success = RedirectResponse(settings.dashboard_path, status_code=status.HTTP_302_FOUND)
        outcome = build_bridge(db, response=success, erp_client=erp_client).login_with_erp_token(erp_token)
        if outcome.ok:
            return success
        return LoginStateResponse(
            authenticated=user is not None,
            flash=FlashMessage(level="error", message="Invalid login credentials."),
        )

    if user is not None:
        return RedirectResponse(settings.dashboard_path, status_code=status.HTTP_302_FOUND)

    flash = pop_flash(request, response)
    return LoginStateResponse(
        authenticated=False,
        flash=FlashMessage.model_validate(flash) if flash else None,
    )


@router.post("/auth/logout")
def logout(response: Response) -> dict:
    response.delete_cookie(SESSION_COOKIE)
    return {"ok": True}


@router.get("/me", response_model=MeResponse)
def me(user: CurrentUser = Depends(get_current_user)) -> MeResponse:
    return MeResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        display_name=user.display_name,
        session_source=user.session_source,
    )
