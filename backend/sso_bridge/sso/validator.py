from __future__ import annotations

import logging
import re

from pydantic import ValidationError

from sso_bridge.core.security import token_prefix
from sso_bridge.sso.errors import TokenStoreError
from sso_bridge.sso.identity import IdentitySnapshot
from sso_bridge.sso.issuer import DEFAULT_KEY_PREFIX, MIN_TOKEN_LENGTH, store_key
from sso_bridge.sso.store import TokenStore

log = logging.getLogger(__name__)

MAX_TOKEN_LENGTH = 256
_TOKEN_RE = re.compile(r"[A-Za-z0-9_-]+")


def is_well_formed(token: str | None, min_length: int = MIN_TOKEN_LENGTH) -> bool:
    if not token or not isinstance(token, str):
        return False
    if not min_length <= len(token) <= MAX_TOKEN_LENGTH:
        return False
    return _TOKEN_RE.fullmatch(token) is not None


class TokenValidator:
    """Consumes issued tokens exactly once.

    Never-issued, already-consumed and expired tokens all come back as
    ``None``. A token that was read is gone from the store before the
    snapshot is returned, whatever the caller does next.
    """

    def __init__(
        self,
        store: TokenStore,
        min_length: int = MIN_TOKEN_LENGTH,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        self._store = store
        self._min_length = min_length
        self._key_prefix = key_prefix

    def is_well_formed(self, token: str | None) -> bool:
        return is_well_formed(token, self._min_length)

    def validate(self, token: str | None) -> IdentitySnapshot | None:
        if not self.is_well_formed(token):
            log.warning("ERP SSO: malformed token rejected - token=%s", token_prefix(token))
            return None

        try:
            raw = self._store.take(store_key(token, self._key_prefix))
        except TokenStoreError as exc:
            log.error("ERP SSO: token store unavailable during validation - token=%s: %s", token_prefix(token), exc)
            return None

        if raw is None:
            log.warning("ERP SSO: invalid or expired token - token=%s", token_prefix(token))
            return None

        try:
            snapshot = IdentitySnapshot.model_validate_json(raw)
        except ValidationError:
            log.exception("ERP SSO: unreadable token record discarded - token=%s", token_prefix(token))
            return None

        log.info("ERP SSO: token validated and consumed - email=%s token=%s", snapshot.email, token_prefix(token))
        return snapshot
