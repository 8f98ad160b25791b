import httpx
import pytest

from adt_sync.services.crawl.client import AtCoderClient
from adt_sync.services.crawl.errors import (
    EmptyContents,
    Forbidden,
    InvalidSession,
    NotFound,
    ServerError,
    TransportError,
    UnexpectedHttpStatus,
)
from conftest import run


def _client(handler, session="sess-token"):
    return AtCoderClient(session, transport=httpx.MockTransport(handler))


def _fetch(client, url="https://atcoder.jp/contests/abc001/submissions?lang=ja&page=1"):
    async def go():
        try:
            return await client.fetch_html(url)
        finally:
            await client.aclose()
    return run(go())


def test_fetch_html_sends_session_cookie_and_returns_body():
    seen = {}

    def handler(request):
        seen["cookie"] = request.headers.get("cookie", "")
        return httpx.Response(200, text="<html><tbody></tbody></html>")

    html = _fetch(_client(handler))
    assert "<tbody>" in html
    assert "REVEL_SESSION=sess-token" in seen["cookie"]


@pytest.mark.parametrize(
    "status,error",
    [
        (302, InvalidSession),
        (401, InvalidSession),
        (403, Forbidden),
        (404, NotFound),
        (500, ServerError),
        (503, ServerError),
        (418, UnexpectedHttpStatus),
    ],
)
def test_status_mapping(status, error):
    headers = {"location": "https://atcoder.jp/login"} if status == 302 else {}
    with pytest.raises(error):
        _fetch(_client(lambda request: httpx.Response(status, headers=headers)))


def test_status_error_retryability():
    assert not InvalidSession().retryable
    assert not Forbidden().retryable
    assert ServerError(502).retryable
    assert ServerError(502).status_code == 502


def test_blank_body_is_empty_contents():
    with pytest.raises(EmptyContents) as exc_info:
        _fetch(_client(lambda request: httpx.Response(200, text="   ")))
    assert exc_info.value.is_empty_content()


def test_network_failure_is_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        _fetch(_client(handler))


def test_url_builders():
    client = AtCoderClient("s", base_url="https://atcoder.jp/")
    assert client.adt_archive_url(2) == "https://atcoder.jp/contests/archive?category=60&lang=ja&page=2"
    assert client.contest_submissions_url("adt_all_20250522_3", 4) == (
        "https://atcoder.jp/contests/adt_all_20250522_3/submissions?lang=ja&page=4"
    )
    run(client.aclose())


def test_from_session_verifies_against_test_contest():
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, text="<html>ok</html>")

    async def go():
        async with await AtCoderClient.from_session(
            "s", test_contest_id="abc001", transport=httpx.MockTransport(handler)
        ) as client:
            return client

    run(go())
    assert requested == ["https://atcoder.jp/contests/abc001/submissions?lang=ja&page=1"]


def test_from_session_rejects_expired_session():
    transport = httpx.MockTransport(lambda request: httpx.Response(302, headers={"location": "/login"}))
    with pytest.raises(InvalidSession):
        run(AtCoderClient.from_session("expired", transport=transport))
