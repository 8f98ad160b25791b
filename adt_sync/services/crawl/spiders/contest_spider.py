from __future__ import annotations

from typing import List

from pydantic import ValidationError
from selectolax.parser import HTMLParser

from ..base import Crawler, parse_atcoder_time
from ..client import AtCoderClient
from ..errors import EmptyContents, HtmlParseError
from adt_sync.models.atcoder import Contest

# The contest archive is one listing for the whole site
GLOBAL_SCOPE = "global"


def _parse_duration(text: str) -> int:
    """'01:00' -> 3600. Durations can exceed 24h, so only HH:MM is assumed."""
    parts = (text or "").strip().split(":")
    if len(parts) < 2:
        raise HtmlParseError(f"Unparseable duration {text!r}")
    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise HtmlParseError(f"Unparseable duration {text!r}") from exc
    return hours * 3600 + minutes * 60


class ContestCrawler(Crawler):
    """Crawls the AtCoder Daily Training contest archive, newest contest first."""

    name = "adt_contests"

    def __init__(self, client: AtCoderClient, **kwargs) -> None:
        super().__init__(**kwargs)
        self.client = client

    async def fetch_page(self, scope: str, page: int) -> List[Contest]:
        html = await self.client.fetch_html(self.client.adt_archive_url(page))
        return self.parse_html(html)

    @staticmethod
    def record_id(record: Contest) -> str:
        return record.id

    @staticmethod
    def parse_html(html: str) -> List[Contest]:
        """Parse the archive table.

        Columns: start time, contest (link to /contests/<id>), duration HH:MM,
        rating-change category.
        """
        doc = HTMLParser(html)
        tbody = doc.css_first("tbody")
        if tbody is None:
            raise EmptyContents()

        contests: List[Contest] = []
        for row_no, tr in enumerate(tbody.css("tr"), start=1):
            tds = tr.css("td")
            if len(tds) < 4:
                raise HtmlParseError(f"contest row {row_no}: expected 4 cells, got {len(tds)}")

            start = parse_atcoder_time(tds[0].text(strip=True))
            link = tds[1].css_first("a")
            href = link.attributes.get("href") if link is not None else None
            if not href:
                raise HtmlParseError(f"contest row {row_no}: missing contest link")
            contest_id = href.rstrip("/").rsplit("/", 1)[-1]
            try:
                contests.append(
                    Contest(
                        id=contest_id,
                        start_epoch_second=start,
                        duration_second=_parse_duration(tds[2].text(strip=True)),
                        title=link.text(strip=True),
                        rate_change=tds[3].text(strip=True),
                    )
                )
            except ValidationError as exc:
                raise HtmlParseError(f"contest row {row_no}: {exc}") from exc
        return contests
