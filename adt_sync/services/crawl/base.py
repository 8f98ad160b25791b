from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional

from .errors import AtCoderClientError, EmptyContents, HtmlParseError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

# Timestamp format used by AtCoder tables, e.g. "2025-05-22 20:30:00+0900"
ATCODER_TIME_FORMAT = "%Y-%m-%d %H:%M:%S%z"


def parse_atcoder_time(text: str) -> int:
    """Convert an AtCoder table timestamp to epoch seconds."""
    try:
        return int(datetime.strptime((text or "").strip(), ATCODER_TIME_FORMAT).timestamp())
    except ValueError as exc:
        raise HtmlParseError(f"Unparseable timestamp {text!r}") from exc


class Crawler:
    """Cursor-bounded page crawler contract.

    Subclasses implement ``fetch_page(scope, page)`` returning the records of
    one listing page in site order (newest first) and ``record_id(record)``
    returning the value compared against the resume boundary.

    ``crawl(scope, until)`` walks pages 1, 2, 3, ... and stops at the first of:
    the boundary record (excluded), an empty page, or ``EmptyContents``.
    Retryable errors are retried ``max_retries`` times with ``retry_sleep``
    between attempts; authorization and parse errors propagate at once.
    """

    name: str = "base"

    def __init__(
        self,
        *,
        page_sleep: float = 1.0,
        max_retries: int = 3,
        retry_sleep: float = 2.0,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.page_sleep = float(page_sleep)
        self.max_retries = int(max_retries)
        self.retry_sleep = float(retry_sleep)
        self._sleep = sleep or asyncio.sleep

    async def fetch_page(self, scope: str, page: int) -> List[Any]:
        raise NotImplementedError

    @staticmethod
    def record_id(record: Any) -> Any:
        raise NotImplementedError

    async def fetch_page_with_retry(self, scope: str, page: int) -> List[Any]:
        attempt = 0
        while True:
            try:
                return await self.fetch_page(scope, page)
            except AtCoderClientError as exc:
                if not exc.retryable or attempt >= self.max_retries:
                    raise
                attempt += 1
                logger.warning(
                    "%s: retrying %s page %d (attempt %d/%d) after %.1fs: %s",
                    self.name, scope, page, attempt, self.max_retries, self.retry_sleep, exc,
                )
                await self._sleep(self.retry_sleep)

    async def crawl(self, scope: str, until: Optional[Any] = None) -> List[Any]:
        """Collect records of ``scope`` newer than ``until`` (all of them when until is None)."""
        if until is None:
            logger.info("%s: crawling %s until the end of the listing", self.name, scope)
        else:
            logger.info("%s: crawling %s until %s", self.name, scope, until)

        records: List[Any] = []
        page = 1
        while True:
            try:
                page_records = await self.fetch_page_with_retry(scope, page)
            except EmptyContents:
                logger.info("%s: reached end of %s at page %d", self.name, scope, page)
                break
            except AtCoderClientError as exc:
                logger.error("%s: failed to fetch %s page %d: %s", self.name, scope, page, exc)
                raise

            if not page_records:
                logger.warning("%s: no records on %s page %d, stopping", self.name, scope, page)
                break

            logger.debug("%s: fetched %d records from %s page %d", self.name, len(page_records), scope, page)
            for record in page_records:
                if until is not None and self.record_id(record) == until:
                    logger.info("%s: reached boundary %s on %s page %d", self.name, until, scope, page)
                    return self._done(scope, records)
                records.append(record)

            page += 1
            await self._sleep(self.page_sleep)

        return self._done(scope, records)

    def _done(self, scope: str, records: List[Any]) -> List[Any]:
        logger.info("%s: crawl of %s completed, %d records", self.name, scope, len(records))
        return records
