from __future__ import annotations

import logging

import httpx

from sso_bridge.core.security import token_prefix
from sso_bridge.sso.identity import is_valid_email

log = logging.getLogger(__name__)


class ErpTokenClient:
    """Asks the ERP authority to confirm a token it issued.

    The ERP answers ``{"status": true, "user": {"email": ...}}`` for a valid
    token. Anything else, including transport errors and timeouts, is
    treated as an invalid token.
    """

    def __init__(
        self,
        validate_url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._validate_url = validate_url
        self._timeout = timeout
        self._transport = transport

    def validate(self, erp_token: str | None) -> str | None:
        if not erp_token:
            return None

        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(self._validate_url, json={"token": erp_token}, headers=headers)
        except httpx.TimeoutException:
            log.error("ERP SSO: ERP validation timed out - token=%s", token_prefix(erp_token))
            return None
        except httpx.HTTPError as exc:
            log.error("ERP SSO: ERP validation request failed - token=%s: %s", token_prefix(erp_token), exc)
            return None

        if response.status_code != 200:
            log.warning(
                "ERP SSO: token validation failed - http_code=%s token=%s",
                response.status_code,
                token_prefix(erp_token),
            )
            return None

        try:
            payload = response.json()
        except ValueError:
            log.warning("ERP SSO: non-JSON response from ERP API - token=%s", token_prefix(erp_token))
            return None

        if not isinstance(payload, dict) or payload.get("status") is not True:
            log.warning("ERP SSO: ERP rejected token - token=%s", token_prefix(erp_token))
            return None

        user = payload.get("user")
        email = user.get("email") if isinstance(user, dict) else None
        if not isinstance(email, str) or not is_valid_email(email):
            log.warning("ERP SSO: invalid response from ERP API - token=%s", token_prefix(erp_token))
            return None

        log.info("ERP SSO: ERP token validated successfully for %s", email)
        return email
