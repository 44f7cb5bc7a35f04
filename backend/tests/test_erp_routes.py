from urllib.parse import parse_qs, urlparse

import httpx

from sso_bridge.main import app
from sso_bridge.models import Session as UserSession
from sso_bridge.models import UserStatus
from sso_bridge.services import sso_service
from sso_bridge.services.sso_service import get_erp_client
from sso_bridge.sso import ErpTokenClient, InMemoryTokenStore
from sso_bridge.sso.errors import TokenStoreError


class BrokenStore(InMemoryTokenStore):
    def put(self, key, value, ttl_seconds):
        raise TokenStoreError("down")


def _token_from(auth_url: str) -> str:
    return parse_qs(urlparse(auth_url).query)["humhub_token"][0]


def test_issue_and_validate_token_end_to_end(client, make_user, login_as):
    user = make_user("alice@example.com")
    login_as(user)

    issue_resp = client.get("/erp/auth-url")
    assert issue_resp.status_code == 200
    issued = issue_resp.json()
    assert issued["status"] is True
    assert issued["auth_url"].startswith("http://erp.test/auth_user?humhub_token=")
    assert issued["user"]["email"] == "alice@example.com"
    token = _token_from(issued["auth_url"])
    assert len(token) == 64

    validate_resp = client.post("/api/erp/validate-token", json={"token": token})
    assert validate_resp.status_code == 200
    body = validate_resp.json()
    assert body == {
        "status": True,
        "user": {
            "id": user.id,
            "email": "alice@example.com",
            "username": "alice",
            "displayName": "Alice",
        },
    }

    replay = client.post("/api/erp/validate-token", json={"token": token}).json()
    assert replay == {"status": False, "message": "Invalid or expired token"}


def test_validate_token_requires_token(client):
    resp = client.post("/api/erp/validate-token", json={})
    assert resp.json() == {"status": False, "message": "Token is required"}


def test_validate_token_accepts_form_body(client, make_user, login_as):
    login_as(make_user("olga@example.com"))
    token = _token_from(client.get("/erp/auth-url").json()["auth_url"])

    resp = client.post("/api/erp/validate-token", data={"token": token})

    assert resp.status_code == 200
    assert resp.json()["status"] is True
    assert resp.json()["user"]["email"] == "olga@example.com"


def test_validate_token_coerces_bad_bodies(client):
    for kwargs in ({"json": {"token": 123}}, {"json": ["token"]}, {"content": b"not json"}, {}):
        resp = client.post("/api/erp/validate-token", **kwargs)
        assert resp.status_code == 200
        assert resp.json() == {"status": False, "message": "Token is required"}

    resp = client.post("/api/erp/validate-token", data={"token": "x" * 64})
    assert resp.json() == {"status": False, "message": "Invalid or expired token"}


def test_validate_token_hides_identity_failures(client, make_user, login_as, db_session):
    user = make_user("bob@example.com")
    login_as(user)
    token = _token_from(client.get("/erp/auth-url").json()["auth_url"])

    user.status = UserStatus.DISABLED
    db_session.commit()

    body = client.post("/api/erp/validate-token", json={"token": token}).json()
    assert body == {"status": False, "message": "Invalid or expired token"}


def test_auth_url_requires_session(client):
    assert client.get("/erp/auth-url").status_code == 401


def test_auth_url_reports_unavailable_store(client, make_user, login_as, monkeypatch):
    login_as(make_user("carol@example.com"))
    monkeypatch.setattr(sso_service, "get_token_store", lambda: BrokenStore())

    resp = client.get("/erp/auth-url")

    assert resp.status_code == 503
    assert resp.json()["status"] is False
    assert "auth_url" not in resp.json()


def test_auth_url_with_unusable_stored_email_is_not_retriable(client, make_user, login_as):
    login_as(make_user("broken-address", username="broken"))

    resp = client.get("/erp/auth-url")
    assert resp.status_code == 422
    assert resp.json()["status"] is False

    assert client.get("/erp/redirect", follow_redirects=False).status_code == 422


def test_erp_redirect(client, make_user, login_as):
    login_as(make_user("dave@example.com"))

    resp = client.get("/erp/redirect", follow_redirects=False)

    assert resp.status_code == 302
    assert resp.headers["location"].startswith("http://erp.test/auth_user?humhub_token=")


def test_auth_user_by_email_logs_in(client, make_user, db_session):
    user = make_user("erin@example.com")

    resp = client.get("/auth_user/erin@example.com", follow_redirects=False)

    assert resp.status_code == 302
    assert resp.headers["location"] == "/dashboard"
    me = client.get("/me")
    assert me.status_code == 200
    assert me.json()["email"] == "erin@example.com"
    assert me.json()["sessionSource"] == "erp"
    assert db_session.query(UserSession).filter(UserSession.user_id == user.id).count() == 1


def test_auth_user_query_variant(client, make_user):
    make_user("frank@example.com")

    resp = client.get("/auth_user", params={"user_email": "frank@example.com"}, follow_redirects=False)

    assert resp.headers["location"] == "/dashboard"


def test_auth_user_disabled_identity_redirects_with_flash(client, make_user, db_session):
    user = make_user("gina@example.com", status=UserStatus.DISABLED)

    resp = client.get("/auth_user/gina@example.com", follow_redirects=False)

    assert resp.status_code == 302
    assert resp.headers["location"] == "/auth/login"
    assert db_session.query(UserSession).filter(UserSession.user_id == user.id).count() == 0

    login_state = client.get("/auth/login").json()
    assert login_state["authenticated"] is False
    assert login_state["flash"] == {"level": "error", "message": "Your account is not enabled"}

    assert "flash" not in client.get("/auth/login").json()


def test_auth_user_invalid_email(client):
    resp = client.get("/auth_user/not-an-email", follow_redirects=False)

    assert resp.headers["location"] == "/auth/login"
    assert client.get("/auth/login").json()["flash"]["message"] == "Invalid email address"


def test_api_login(client, make_user):
    make_user("hank@example.com")

    ok = client.post("/api/auth/login", json={"email": "hank@example.com"}).json()
    assert ok["status"] is True
    assert ok["message"] == "Authentication successful"
    assert "/auth_user/" in ok["auth_url"]
    assert ok["user"]["username"] == "hank"

    missing = client.post("/api/auth/login", json={"email": "nobody@example.com"}).json()
    assert missing == {"status": False, "message": "Authentication failed"}

    invalid = client.post("/api/auth/login", json={"email": "bogus"}).json()
    assert invalid == {"status": False, "message": "Invalid email address"}


def test_api_login_accepts_form_body(client, make_user):
    make_user("kate@example.com")

    resp = client.post("/api/auth/login", data={"email": "kate@example.com"})

    assert resp.status_code == 200
    assert resp.json()["status"] is True
    assert resp.json()["user"]["email"] == "kate@example.com"


def test_api_login_rejects_bad_email_input(client, make_user):
    make_user("a@x.com")

    for kwargs in ({"json": {"email": 42}}, {"data": {"email": "Alice <a@x.com>"}}, {}):
        resp = client.post("/api/auth/login", **kwargs)
        assert resp.status_code == 200
        assert resp.json() == {"status": False, "message": "Invalid email address"}


def test_login_with_erp_token(client, make_user):
    make_user("ivy@example.com")

    def handler(request):
        if b"good-erp-token" in request.content:
            return httpx.Response(200, json={"status": True, "user": {"email": "ivy@example.com"}})
        return httpx.Response(401, json={"status": False})

    app.dependency_overrides[get_erp_client] = lambda: ErpTokenClient(
        "http://erp.test/api/humhub/validate-token", transport=httpx.MockTransport(handler)
    )

    failed = client.get("/auth/login", params={"erp_token": "bad-erp-token"}, follow_redirects=False)
    assert failed.status_code == 200
    assert failed.json() == {
        "authenticated": False,
        "flash": {"level": "error", "message": "Invalid login credentials."},
    }

    resp = client.get("/auth/login", params={"erp_token": "good-erp-token"}, follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/dashboard"
    assert client.get("/me").json()["email"] == "ivy@example.com"


def test_login_page_redirects_authenticated_user(client, make_user, login_as):
    login_as(make_user("jack@example.com"))

    resp = client.get("/auth/login", follow_redirects=False)

    assert resp.status_code == 302


def test_logout_clears_session(client, make_user):
    make_user("kim@example.com")
    client.get("/auth_user/kim@example.com", follow_redirects=False)
    assert client.get("/me").status_code == 200

    client.post("/auth/logout")

    assert client.get("/me").status_code == 401


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}
