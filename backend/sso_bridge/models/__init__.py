from sso_bridge.models.base import Base
from sso_bridge.models.entities import Session, User
from sso_bridge.models.enums import SessionSource, TokenStoreBackend, UserStatus

__all__ = ["Base", "Session", "SessionSource", "TokenStoreBackend", "User", "UserStatus"]
