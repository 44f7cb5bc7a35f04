"""Orchestration of the inbound and outbound ERP single-sign-on flows.

Inbound logins walk a fixed sequence of states::

    START -> TOKEN_VALIDATED -> IDENTITY_RESOLVED -> SESSION_ESTABLISHED

and stop in ``FAILED`` with a :class:`FailureReason` at the first step that
does not hold. The email-based variant starts at the identity step and
relies on the deployment to expose it only on a trusted network path.

The identity is always re-resolved by email after a token is validated, so
the enablement check reflects the live user even when the snapshot is
stale.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from pydantic import ValidationError

from sso_bridge.core.security import token_prefix
from sso_bridge.sso.errors import (
    FailureReason,
    IdentityNotEnabled,
    IdentityNotFound,
    InvalidOrExpiredToken,
    MalformedInput,
    SessionEstablishFailed,
    SsoError,
)
from sso_bridge.sso.identity import IdentitySnapshot, ResolvedIdentity, is_valid_email
from sso_bridge.sso.issuer import TokenIssuer
from sso_bridge.sso.validator import TokenValidator

log = logging.getLogger(__name__)


class IdentityResolver(Protocol):
    def resolve(self, email: str) -> ResolvedIdentity | None:
        """Return the local identity registered under ``email``, if any."""


class SessionEstablisher(Protocol):
    def establish(self, identity: ResolvedIdentity) -> bool:
        """Bind a web session to ``identity``; ``False`` when refused."""


class RemoteTokenValidator(Protocol):
    def validate(self, erp_token: str | None) -> str | None:
        """Return the email confirmed by the ERP for ``erp_token``."""


class BridgeState(str, Enum):
    START = "start"
    TOKEN_VALIDATED = "token_validated"
    IDENTITY_RESOLVED = "identity_resolved"
    SESSION_ESTABLISHED = "session_established"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class SsoOutcome:
    state: BridgeState
    identity: ResolvedIdentity | None = None
    snapshot: IdentitySnapshot | None = None
    reason: FailureReason | None = None
    status: str | None = None
    public_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.state != BridgeState.FAILED


class SsoBridge:
    def __init__(
        self,
        validator: TokenValidator,
        issuer: TokenIssuer,
        resolver: IdentityResolver,
        establisher: SessionEstablisher | None = None,
        erp_client: RemoteTokenValidator | None = None,
    ) -> None:
        self._validator = validator
        self._issuer = issuer
        self._resolver = resolver
        self._establisher = establisher
        self._erp_client = erp_client

    # Inbound

    def login_with_token(self, token: str | None) -> SsoOutcome:
        """Log in with a token this host issued."""
        return self._login(token, self._validate_local)

    def login_with_erp_token(self, erp_token: str | None) -> SsoOutcome:
        """Log in with a token issued by the ERP and confirmed over HTTP."""
        return self._login(erp_token, self._validate_remote)

    def login_with_email(self, email: str | None) -> SsoOutcome:
        """Log in from a bare email claim.

        There is no proof of possession on this path: it must only be
        reachable from a network the deployment trusts.
        """
        try:
            self._check_email_format(email)
            identity = self._resolve(email)
            self._establish(identity)
        except SsoError as exc:
            return self._fail("email login", exc, email=email)

        log.info("ERP Auth: user logged in successfully - %s", email)
        return SsoOutcome(state=BridgeState.SESSION_ESTABLISHED, identity=identity)

    def redeem(self, token: str | None) -> SsoOutcome:
        """Consume a token and re-resolve its identity without opening a session."""
        try:
            snapshot = self._consume(token)
            identity = self._resolve(snapshot.email)
        except SsoError as exc:
            return self._fail("token redemption", exc, token=token)

        log.info("ERP SSO: token redeemed - user_id=%s email=%s", identity.id, identity.email)
        return SsoOutcome(state=BridgeState.IDENTITY_RESOLVED, identity=identity, snapshot=snapshot)

    def check_email(self, email: str | None) -> SsoOutcome:
        """Resolve an enabled identity from an email claim without opening a session."""
        try:
            self._check_email_format(email)
            identity = self._resolve(email)
        except SsoError as exc:
            return self._fail("email check", exc, email=email)
        return SsoOutcome(state=BridgeState.IDENTITY_RESOLVED, identity=identity)

    # Outbound

    def issue_auth_url(self, identity: ResolvedIdentity | IdentitySnapshot) -> str:
        """Issue a single-use token for ``identity`` and return the ERP URL carrying it.

        Raises:
            MalformedInput: the identity email is not a valid address.
            IssuanceError: no token could be issued; retriable.
        """
        if isinstance(identity, ResolvedIdentity):
            try:
                snapshot = identity.snapshot()
            except ValidationError as exc:
                raise MalformedInput("identity email is not a valid address") from exc
        else:
            snapshot = identity
        _, url = self._issuer.issue_auth_url(snapshot)
        return url

    # Steps

    def _login(
        self,
        token: str | None,
        validate: Callable[[str | None], tuple[str, IdentitySnapshot | None]],
    ) -> SsoOutcome:
        try:
            email, snapshot = validate(token)
            identity = self._resolve(email)
            self._establish(identity)
        except SsoError as exc:
            return self._fail("token login", exc, token=token)

        log.info("ERP SSO: user %s logged in successfully - token=%s", identity.email, token_prefix(token))
        return SsoOutcome(state=BridgeState.SESSION_ESTABLISHED, identity=identity, snapshot=snapshot)

    def _consume(self, token: str | None) -> IdentitySnapshot:
        if not self._validator.is_well_formed(token):
            raise MalformedInput("token is empty or malformed")
        snapshot = self._validator.validate(token)
        if snapshot is None:
            raise InvalidOrExpiredToken("token not found in store")
        return snapshot

    def _validate_local(self, token: str | None) -> tuple[str, IdentitySnapshot]:
        snapshot = self._consume(token)
        return snapshot.email, snapshot

    def _validate_remote(self, erp_token: str | None) -> tuple[str, None]:
        if self._erp_client is None:
            raise RuntimeError("no ERP client configured for ERP token logins")
        if not erp_token:
            raise MalformedInput("token is empty")
        email = self._erp_client.validate(erp_token)
        if email is None:
            raise InvalidOrExpiredToken("ERP rejected token")
        return email, None

    def _check_email_format(self, email: str | None) -> None:
        if not is_valid_email(email):
            raise MalformedInput(f"invalid email format: {email!r}")

    def _resolve(self, email: str) -> ResolvedIdentity:
        try:
            identity = self._resolver.resolve(email)
        except Exception as exc:
            log.exception("ERP SSO: identity lookup failed for %s", email)
            raise IdentityNotFound(f"identity lookup failed for {email}") from exc

        if identity is None:
            raise IdentityNotFound(f"user not found with email: {email}")
        if not identity.enabled:
            raise IdentityNotEnabled(
                f"user not enabled - {email}, status: {identity.status.value}",
                status=identity.status.value,
            )
        return identity

    def _establish(self, identity: ResolvedIdentity) -> None:
        if self._establisher is None:
            raise RuntimeError("no session establisher configured for login flows")
        try:
            established = self._establisher.establish(identity)
        except Exception as exc:
            log.exception("ERP SSO: session establisher raised for user %s", identity.id)
            raise SessionEstablishFailed(f"session establisher raised for user {identity.id}") from exc
        if not established:
            raise SessionEstablishFailed(f"session refused for user {identity.id}")

    def _fail(self, flow: str, exc: SsoError, token: str | None = None, email: str | None = None) -> SsoOutcome:
        subject = f"token={token_prefix(token)}" if email is None else f"email={email}"
        log.warning("ERP SSO: %s failed - reason=%s %s: %s", flow, exc.reason.value, subject, exc)
        return SsoOutcome(
            state=BridgeState.FAILED,
            reason=exc.reason,
            status=getattr(exc, "status", None),
            public_message=exc.public_message,
        )
