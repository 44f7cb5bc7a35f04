import json

import httpx

from sso_bridge.sso.erp_client import ErpTokenClient

VALIDATE_URL = "http://erp.test/api/humhub/validate-token"


def _client(handler) -> ErpTokenClient:
    return ErpTokenClient(VALIDATE_URL, timeout=1.0, transport=httpx.MockTransport(handler))


def test_valid_token_returns_email():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": True, "user": {"email": "a@example.com"}})

    assert _client(handler).validate("erp-token") == "a@example.com"
    assert seen["url"] == VALIDATE_URL
    assert seen["body"] == {"token": "erp-token"}


def test_rejected_token_returns_none():
    def handler(request):
        return httpx.Response(200, json={"status": False, "message": "Invalid token"})

    assert _client(handler).validate("erp-token") is None


def test_non_200_returns_none():
    def handler(request):
        return httpx.Response(500, json={"status": True, "user": {"email": "a@example.com"}})

    assert _client(handler).validate("erp-token") is None


def test_missing_email_returns_none():
    def handler(request):
        return httpx.Response(200, json={"status": True, "user": {}})

    assert _client(handler).validate("erp-token") is None


def test_non_json_body_returns_none():
    def handler(request):
        return httpx.Response(200, text="<html>oops</html>")

    assert _client(handler).validate("erp-token") is None


def test_timeout_returns_none():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    assert _client(handler).validate("erp-token") is None


def test_connection_error_returns_none():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    assert _client(handler).validate("erp-token") is None


def test_empty_token_makes_no_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"status": True, "user": {"email": "a@example.com"}})

    assert _client(handler).validate("") is None
    assert calls == []
