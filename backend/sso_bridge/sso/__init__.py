from sso_bridge.sso.bridge import (
    BridgeState,
    IdentityResolver,
    RemoteTokenValidator,
    SessionEstablisher,
    SsoBridge,
    SsoOutcome,
)
from sso_bridge.sso.erp_client import ErpTokenClient
from sso_bridge.sso.errors import FailureReason, IssuanceError, MalformedInput, SsoError
from sso_bridge.sso.identity import IdentitySnapshot, ResolvedIdentity, is_valid_email
from sso_bridge.sso.issuer import TokenIssuer
from sso_bridge.sso.store import InMemoryTokenStore, RedisTokenStore, TokenStore, build_token_store
from sso_bridge.sso.validator import TokenValidator

__all__ = [
    "BridgeState",
    "ErpTokenClient",
    "FailureReason",
    "IdentityResolver",
    "IdentitySnapshot",
    "InMemoryTokenStore",
    "IssuanceError",
    "MalformedInput",
    "RedisTokenStore",
    "RemoteTokenValidator",
    "ResolvedIdentity",
    "SessionEstablisher",
    "SsoBridge",
    "SsoError",
    "SsoOutcome",
    "TokenIssuer",
    "TokenStore",
    "TokenValidator",
    "build_token_store",
    "is_valid_email",
]
