import pytest
from pydantic import ValidationError

from sso_bridge.models import UserStatus
from sso_bridge.sso.identity import IdentitySnapshot, ResolvedIdentity, is_valid_email


def test_snapshot_requires_valid_email():
    with pytest.raises(ValidationError):
        IdentitySnapshot(user_id="1", email="not-an-email", username="u", display_name="U")


def test_snapshot_is_frozen():
    snapshot = IdentitySnapshot(user_id="1", email="u@example.com", username="u", display_name="U")
    with pytest.raises(ValidationError):
        snapshot.email = "other@example.com"


def test_snapshot_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        IdentitySnapshot(user_id="1", email="u@example.com", username="u", display_name="U", role="admin")


def test_resolved_identity_snapshot_and_enabled():
    identity = ResolvedIdentity(
        id="7", email="u@example.com", username="u", display_name="User", status=UserStatus.NEED_APPROVAL
    )

    assert identity.enabled is False
    snapshot = identity.snapshot()
    assert snapshot.user_id == "7"
    assert snapshot.display_name == "User"
    assert snapshot.issued_at.tzinfo is not None


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("u@example.com", True),
        ("", False),
        (None, False),
        ("u@", False),
        ("@example.com", False),
        ("Alice <a@x.com>", False),
    ],
)
def test_is_valid_email(value, expected):
    assert is_valid_email(value) is expected
