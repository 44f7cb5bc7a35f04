from pydantic import BaseModel, ConfigDict, Field

from sso_bridge.models.enums import SessionSource


class MeResponse(BaseModel):
    id: str
    email: str
    username: str
    display_name: str = Field(alias="displayName")
    session_source: SessionSource = Field(alias="sessionSource")

    model_config = ConfigDict(populate_by_name=True)
