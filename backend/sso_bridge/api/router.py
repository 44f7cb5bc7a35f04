from fastapi import APIRouter

from sso_bridge.api.routes import auth, erp_auth

api_router = APIRouter()
api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(erp_auth.router, tags=["erp-sso"])
