from enum import Enum


class UserStatus(str, Enum):
    DISABLED = "disabled"
    ENABLED = "enabled"
    NEED_APPROVAL = "need_approval"


class SessionSource(str, Enum):
    ERP = "erp"
    LOCAL = "local"


class TokenStoreBackend(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"
