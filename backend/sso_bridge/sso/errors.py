"""Error taxonomy for the ERP token bridge.

Every error carries a stable ``reason`` code used in logs and in
:class:`~sso_bridge.sso.bridge.SsoOutcome`. Callers outside the trust
boundary only ever see the generic ``public_message``.
"""

from __future__ import annotations

from enum import Enum

__all__ = [
    "FailureReason",
    "SsoError",
    "MalformedInput",
    "InvalidOrExpiredToken",
    "IdentityNotFound",
    "IdentityNotEnabled",
    "SessionEstablishFailed",
    "IssuanceError",
    "TokenStoreError",
]


class FailureReason(str, Enum):
    MALFORMED_INPUT = "malformed_input"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    IDENTITY_NOT_FOUND = "identity_not_found"
    IDENTITY_NOT_ENABLED = "identity_not_enabled"
    SESSION_ESTABLISH_FAILED = "session_establish_failed"
    ISSUANCE_FAILED = "issuance_failed"


class SsoError(Exception):
    """Base class for all bridge errors."""

    reason: FailureReason
    public_message = "Authentication failed"


class MalformedInput(SsoError):
    """Empty or badly formatted token or email. Rejected before any store access."""

    reason = FailureReason.MALFORMED_INPUT
    public_message = "Invalid request"


class InvalidOrExpiredToken(SsoError):
    """Token never issued, already consumed, or expired.

    The three cases are deliberately indistinguishable.
    """

    reason = FailureReason.INVALID_OR_EXPIRED_TOKEN
    public_message = "Invalid or expired token"


class IdentityNotFound(SsoError):
    reason = FailureReason.IDENTITY_NOT_FOUND


class IdentityNotEnabled(SsoError):
    reason = FailureReason.IDENTITY_NOT_ENABLED

    def __init__(self, message: str, status: str | None = None):
        super().__init__(message)
        self.status = status


class SessionEstablishFailed(SsoError):
    reason = FailureReason.SESSION_ESTABLISH_FAILED
    public_message = "Failed to create user session"


class IssuanceError(SsoError):
    """Entropy source or token store unavailable while issuing.

    Retriable: callers should surface it as service unavailable.
    """

    reason = FailureReason.ISSUANCE_FAILED
    public_message = "Authentication service unavailable"


class TokenStoreError(Exception):
    """The backing cache could not be reached or answered with an error."""
