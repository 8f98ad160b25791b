from __future__ import annotations

import re
from typing import List, Optional

from pydantic import ValidationError
from selectolax.parser import HTMLParser, Node

from ..base import Crawler, parse_atcoder_time
from ..client import AtCoderClient
from ..errors import EmptyContents, HtmlParseError
from adt_sync.models.atcoder import Submission

_SUBMISSION_LINK = re.compile(r"submissions/(\d+)$")


def _last_path_segment(node: Optional[Node], what: str, row_no: int) -> str:
    link = node.css_first("a") if node is not None else None
    href = link.attributes.get("href") if link is not None else None
    if not href:
        raise HtmlParseError(f"submission row {row_no}: missing {what} link")
    return href.rstrip("/").rsplit("/", 1)[-1]


def _strip_unit(text: str, unit: str) -> str:
    return (text or "").replace(unit, "").strip()


class SubmissionCrawler(Crawler):
    """Crawls one contest's submission list, newest submission first."""

    name = "submissions"

    def __init__(self, client: AtCoderClient, **kwargs) -> None:
        super().__init__(**kwargs)
        self.client = client

    async def fetch_page(self, scope: str, page: int) -> List[Submission]:
        html = await self.client.fetch_html(self.client.contest_submissions_url(scope, page))
        return self.parse_html(html, contest_id=scope)

    @staticmethod
    def record_id(record: Submission) -> int:
        return record.id

    @staticmethod
    def parse_html(html: str, *, contest_id: str) -> List[Submission]:
        """Parse a submissions table.

        Columns: time, task link, user link, language, score, "<n> Byte",
        status, then "<n> ms" for judged submissions (compile errors have a
        detail link there instead). The id comes from the submissions/<id> link.
        """
        doc = HTMLParser(html)
        tbody = doc.css_first("tbody")
        if tbody is None:
            raise EmptyContents()

        submissions: List[Submission] = []
        for row_no, tr in enumerate(tbody.css("tr"), start=1):
            tds = tr.css("td")
            if len(tds) < 7:
                raise HtmlParseError(f"submission row {row_no}: expected at least 7 cells, got {len(tds)}")

            epoch_second = parse_atcoder_time(tds[0].text(strip=True))
            problem_id = _last_path_segment(tds[1], "task", row_no)
            user_id = _last_path_segment(tds[2], "user", row_no)
            try:
                point = float(tds[4].text(strip=True))
                length = int(_strip_unit(tds[5].text(strip=True), "Byte"))
            except ValueError as exc:
                raise HtmlParseError(f"submission row {row_no}: {exc}") from exc

            execution_time = None
            if len(tds) > 7:
                ms = _strip_unit(tds[7].text(strip=True), "ms")
                execution_time = int(ms) if ms.isdigit() else None

            submission_id = None
            for a in tr.css("a"):
                m = _SUBMISSION_LINK.search(a.attributes.get("href") or "")
                if m:
                    submission_id = int(m.group(1))
                    break
            if submission_id is None:
                raise HtmlParseError(f"submission row {row_no}: missing submission link")

            try:
                submissions.append(
                    Submission(
                        id=submission_id,
                        epoch_second=epoch_second,
                        problem_id=problem_id,
                        contest_id=contest_id,
                        user_id=user_id,
                        language=tds[3].text(strip=True),
                        point=point,
                        length=length,
                        result=tds[6].text(strip=True),
                        execution_time=execution_time,
                    )
                )
            except ValidationError as exc:
                raise HtmlParseError(f"submission row {row_no}: {exc}") from exc
        return submissions
