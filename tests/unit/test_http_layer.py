# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import httpx

from amaprobe.config import ProbeSettings
from amaprobe.errors import ErrorCategory
from amaprobe.http import HttpRequest, HttpResponse, HttpxClient, StubHttpClient, header_value


def _client(handler, **settings):
    transport = httpx.MockTransport(handler)
    return HttpxClient(ProbeSettings(**settings), client=httpx.Client(transport=transport))


def test_httpx_client_reads_response_and_sets_user_agent():
    seen = {}

    def handler(request):
        seen["ua"] = request.headers.get("user-agent")
        seen["metadata"] = request.headers.get("metadata")
        return httpx.Response(200, text="Healthy", headers={"X-Test": "1"})

    client = _client(handler, user_agent="amaprobe-test/1.0")
    response = client.request(HttpRequest(url="https://example.com/ping", headers={"Metadata": "true"}))

    assert response.ok is True
    assert response.status_code == 200
    assert response.text == "Healthy"
    assert header_value(response.headers, "x-test") == "1"
    assert seen == {"ua": "amaprobe-test/1.0", "metadata": "true"}
    client.close()


def test_httpx_client_caps_body():
    client = _client(lambda request: httpx.Response(200, content=b"a" * 100), max_body_bytes=10)
    response = client.request(HttpRequest(url="https://example.com/big"))
    assert response.content == b"a" * 10
    assert response.meta["body_truncated"] is True


def test_httpx_client_transport_errors_do_not_raise():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    response = _client(handler).request(HttpRequest(url="https://example.com/slow"))
    assert response.ok is False
    assert response.status_code is None
    assert response.transport_failed
    assert response.category == ErrorCategory.TIMEOUT
    assert response.error_type == "ConnectTimeout"


def test_httpx_client_posts_body():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["body"] = request.content
        return httpx.Response(202)

    response = _client(handler).request(HttpRequest(url="https://example.com/api/logs", method="POST", body=b"[]"))
    assert response.status_code == 202
    assert captured == {"method": "POST", "body": b"[]"}


def test_default_client_never_trusts_environment_proxies(monkeypatch):
    monkeypatch.setenv("HTTPS_PROXY", "http://should-not-be-used:1")
    client = HttpxClient(ProbeSettings())
    assert client.proxy is None
    assert client._client.trust_env is False
    client.close()


def test_stub_client_records_requests():
    stub = StubHttpClient({"https://a/": HttpResponse(ok=True, status_code=204)})
    stub.add("https://b/", lambda request: HttpResponse(ok=True, status_code=200, text=request.method))

    assert stub.request(HttpRequest(url="https://a/")).status_code == 204
    assert stub.request(HttpRequest(url="https://b/", method="POST")).text == "POST"
    missing = stub.request(HttpRequest(url="https://c/"))
    assert missing.ok is False and missing.status_code is None
    assert [request.url for request in stub.requests] == ["https://a/", "https://b/", "https://c/"]
    stub.close()
    assert stub.closed


def test_response_json_and_headers():
    assert HttpResponse(ok=True, status_code=200, text='{"a": 1}').json() == {"a": 1}
    assert HttpResponse(ok=True, status_code=200, text="not json").json() is None
    assert header_value({"WWW-Authenticate": "Basic realm=/x"}, "www-authenticate") == "Basic realm=/x"
