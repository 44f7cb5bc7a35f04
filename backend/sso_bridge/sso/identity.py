from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from sso_bridge.models.enums import UserStatus


def is_valid_email(value: str | None) -> bool:
    """Bare address check: display-name forms such as ``Name <a@x.com>`` are rejected."""
    if not value:
        return False
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


class IdentitySnapshot(BaseModel):
    """Identity data frozen at the moment a token is issued."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: str = Field(min_length=1)
    email: EmailStr
    username: str
    display_name: str
    issued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True, slots=True)
class ResolvedIdentity:
    """A live host user as returned by an identity resolver."""

    id: str
    email: str
    username: str
    display_name: str
    status: UserStatus

    @property
    def enabled(self) -> bool:
        return self.status == UserStatus.ENABLED

    def snapshot(self) -> IdentitySnapshot:
        return IdentitySnapshot(
            user_id=self.id,
            email=self.email,
            username=self.username,
            display_name=self.display_name,
        )
