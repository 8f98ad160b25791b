from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from .errors import (
    AtCoderClientError,
    EmptyContents,
    Forbidden,
    InvalidSession,
    NotFound,
    ServerError,
    TransportError,
    UnexpectedHttpStatus,
)

logger = logging.getLogger(__name__)

ATCODER_BASE_URL = "https://atcoder.jp"
# Contest archive category of AtCoder Daily Training
ADT_ARCHIVE_CATEGORY = 60
SESSION_COOKIE = "REVEL_SESSION"


class AtCoderClient:
    """Fetches AtCoder HTML pages with an authenticated REVEL_SESSION cookie.

    Redirects are not followed: AtCoder answers an expired session with a
    302 to the login page, which is reported as InvalidSession.
    """

    def __init__(
        self,
        session: str,
        *,
        base_url: str = ATCODER_BASE_URL,
        timeout: float = 15.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers=headers or {"User-Agent": "adt-sync/0.1", "accept": "text/html"},
            cookies={SESSION_COOKIE: session},
            follow_redirects=False,
            transport=transport,
        )

    @classmethod
    async def from_session(cls, session: str, *, test_contest_id: str = "abc001", **kwargs) -> "AtCoderClient":
        """Create a client and verify the session against a known submissions page."""
        client = cls(session, **kwargs)
        try:
            await client.fetch_html(client.contest_submissions_url(test_contest_id, 1))
        except AtCoderClientError:
            await client.aclose()
            raise
        logger.info("AtCoder session verified with contest %s", test_contest_id)
        return client

    async def __aenter__(self) -> "AtCoderClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_html(self, url: str) -> str:
        """GET a page and return its HTML, raising a typed AtCoderClientError otherwise."""
        try:
            resp = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {url} failed: {exc}") from exc

        if not resp.is_success:
            raise self._status_error(resp.status_code)
        html = resp.text
        if not html.strip():
            raise EmptyContents(f"Empty response body from {url}")
        return html

    @staticmethod
    def _status_error(status: int) -> AtCoderClientError:
        if status in (302, 401):
            return InvalidSession()
        if status == 403:
            return Forbidden()
        if status == 404:
            return NotFound()
        if 500 <= status < 600:
            return ServerError(status)
        return UnexpectedHttpStatus(status)

    def adt_archive_url(self, page: int) -> str:
        return f"{self.base_url}/contests/archive?category={ADT_ARCHIVE_CATEGORY}&lang=ja&page={page}"

    def contest_submissions_url(self, contest_id: str, page: int) -> str:
        return f"{self.base_url}/contests/{contest_id}/submissions?lang=ja&page={page}"
