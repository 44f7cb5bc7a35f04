from itsdangerous import BadSignature, URLSafeTimedSerializer

from sso_bridge.core.config import get_settings

settings = get_settings()

TOKEN_PREVIEW_CHARS = 10


def token_prefix(token: str | None) -> str:
    if not token:
        return "<empty>"
    return f"{token[:TOKEN_PREVIEW_CHARS]}..."


class SessionSigner:
    def __init__(self) -> None:
        self._serializer = URLSafeTimedSerializer(secret_key=settings.session_secret)

    def sign(self, session_id: str) -> str:
        return self._serializer.dumps({"session_id": session_id})

    def unsign(self, token: str, max_age_seconds: int | None = None) -> str | None:
        max_age = max_age_seconds if max_age_seconds is not None else settings.session_max_age_seconds
        try:
            payload = self._serializer.loads(token, max_age=max_age)
        except BadSignature:
            return None
        return payload.get("session_id")


class FlashSigner:
    """Signs the one-shot message shown after a browser redirect."""

    def __init__(self) -> None:
        self._serializer = URLSafeTimedSerializer(
            secret_key=settings.session_secret, salt=settings.flash_signer_salt
        )

    def sign(self, level: str, message: str) -> str:
        return self._serializer.dumps({"level": level, "message": message})

    def unsign(self, value: str, max_age_seconds: int = 300) -> dict | None:
        try:
            payload = self._serializer.loads(value, max_age=max_age_seconds)
        except BadSignature:
            return None
        if not isinstance(payload, dict):
            return None
        return payload
