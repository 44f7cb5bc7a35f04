from sso_bridge.models import Base

__all__ = ["Base"]
