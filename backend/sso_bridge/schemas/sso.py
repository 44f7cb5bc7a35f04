from pydantic import BaseModel, ConfigDict, Field

from sso_bridge.sso.identity import ResolvedIdentity


class SsoUserResponse(BaseModel):
    id: str
    email: str
    username: str
    display_name: str = Field(alias="displayName")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_identity(cls, identity: ResolvedIdentity) -> "SsoUserResponse":
        return cls(
            id=identity.id,
            email=identity.email,
            username=identity.username,
            display_name=identity.display_name,
        )


class ValidateTokenResponse(BaseModel):
    status: bool
    message: str | None = None
    user: SsoUserResponse | None = None


class AuthUrlResponse(BaseModel):
    status: bool
    message: str
    auth_url: str | None = None
    user: SsoUserResponse | None = None


class FlashMessage(BaseModel):
    level: str
    message: str


class LoginStateResponse(BaseModel):
    authenticated: bool
    flash: FlashMessage | None = None
