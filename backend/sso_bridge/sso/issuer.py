from __future__ import annotations

import logging
import secrets
import string
from datetime import UTC, datetime
from urllib.parse import urlencode

from sso_bridge.core.security import token_prefix
from sso_bridge.sso.errors import IssuanceError, TokenStoreError
from sso_bridge.sso.identity import IdentitySnapshot
from sso_bridge.sso.store import TokenStore

log = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_letters + string.digits + "-_"
MIN_TOKEN_LENGTH = 64
DEFAULT_TOKEN_TTL_SECONDS = 300
DEFAULT_KEY_PREFIX = "erp_sso_token:"


def generate_token(length: int = MIN_TOKEN_LENGTH) -> str:
    if length < MIN_TOKEN_LENGTH:
        raise ValueError(f"token length must be at least {MIN_TOKEN_LENGTH}")
    try:
        return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))
    except (NotImplementedError, OSError) as exc:
        raise IssuanceError("secure random source unavailable") from exc


def store_key(token: str, prefix: str = DEFAULT_KEY_PREFIX) -> str:
    return f"{prefix}{token}"


class TokenIssuer:
    """Creates single-use tokens bound to an identity snapshot.

    Each call to :meth:`issue` performs exactly one store write and no
    read-back. The stored snapshot is stamped with the issuance time. The
    redirect URL is built from the configured ERP base URL; the token
    alphabet contains no URL-reserved characters.
    """

    def __init__(
        self,
        store: TokenStore,
        auth_base_url: str,
        token_param: str = "humhub_token",
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        token_length: int = MIN_TOKEN_LENGTH,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        if token_length < MIN_TOKEN_LENGTH:
            raise ValueError(f"token_length must be at least {MIN_TOKEN_LENGTH}")
        self._store = store
        self._auth_base_url = auth_base_url
        self._token_param = token_param
        self._ttl_seconds = ttl_seconds
        self._token_length = token_length
        self._key_prefix = key_prefix

    def issue(self, identity: IdentitySnapshot) -> str:
        token = generate_token(self._token_length)
        record = identity.model_copy(update={"issued_at": datetime.now(UTC)})

        try:
            self._store.put(store_key(token, self._key_prefix), record.model_dump_json(), self._ttl_seconds)
        except TokenStoreError as exc:
            log.error("ERP SSO: token store unavailable during issuance for user %s: %s", identity.user_id, exc)
            raise IssuanceError("token store unavailable") from exc

        log.info(
            "ERP SSO: token generated for user id=%s email=%s token=%s",
            identity.user_id,
            identity.email,
            token_prefix(token),
        )
        return token

    def build_auth_url(self, token: str) -> str:
        return f"{self._auth_base_url}?{urlencode({self._token_param: token})}"

    def issue_auth_url(self, identity: IdentitySnapshot) -> tuple[str, str]:
        token = self.issue(identity)
        return token, self.build_auth_url(token)
