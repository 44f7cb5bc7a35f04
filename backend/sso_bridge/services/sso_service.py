from __future__ import annotations

from functools import lru_cache

from fastapi import Request, Response
from sqlalchemy.orm import Session

from sso_bridge.core.config import get_settings
from sso_bridge.core.security import FlashSigner
from sso_bridge.services.identity_service import CookieSessionEstablisher, SqlIdentityResolver
from sso_bridge.sso import (
    ErpTokenClient,
    SsoBridge,
    TokenIssuer,
    TokenStore,
    TokenValidator,
    build_token_store,
)

FLASH_COOKIE = "flash"

settings = get_settings()
flash_signer = FlashSigner()


@lru_cache
def get_token_store() -> TokenStore:
    return build_token_store(settings)


def build_issuer(store: TokenStore) -> TokenIssuer:
    return TokenIssuer(
        store,
        auth_base_url=settings.erp_auth_base,
        token_param=settings.erp_token_param,
        ttl_seconds=settings.sso_token_ttl_seconds,
        token_length=settings.sso_token_length,
        key_prefix=settings.sso_cache_key_prefix,
    )


def build_validator(store: TokenStore) -> TokenValidator:
    return TokenValidator(store, key_prefix=settings.sso_cache_key_prefix)


def get_erp_client() -> ErpTokenClient:
    return ErpTokenClient(settings.erp_validate_url, timeout=settings.erp_timeout_seconds)


def build_bridge(
    db: Session,
    response: Response | None = None,
    erp_client: ErpTokenClient | None = None,
) -> SsoBridge:
    store = get_token_store()
    return SsoBridge(
        validator=build_validator(store),
        issuer=build_issuer(store),
        resolver=SqlIdentityResolver(db),
        establisher=CookieSessionEstablisher(db, response) if response is not None else None,
        erp_client=erp_client,
    )


def set_flash(response: Response, message: str, level: str = "error") -> None:
    response.set_cookie(
        key=FLASH_COOKIE,
        value=flash_signer.sign(level, message),
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        max_age=300,
    )


def pop_flash(request: Request, response: Response) -> dict | None:
    raw = request.cookies.get(FLASH_COOKIE)
    if not raw:
        return None
    response.delete_cookie(FLASH_COOKIE)
    return flash_signer.unsign(raw)
