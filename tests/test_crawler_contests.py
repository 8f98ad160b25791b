from datetime import datetime, timedelta, timezone

import pytest

from adt_sync.services.crawl.errors import EmptyContents, HtmlParseError
from adt_sync.services.crawl.spiders.contest_spider import GLOBAL_SCOPE, ContestCrawler
from conftest import RecordingSleep, read_fixture, run

JST = timezone(timedelta(hours=9))

ROW = """<tr>
<td class="text-center"><time class="fixtime fixtime-full">{start}</time></td>
<td><a href="/contests/{cid}">{title}</a></td>
<td class="text-center">01:00</td>
<td class="text-center">-</td>
</tr>"""


def _archive_html(contest_ids):
    rows = []
    for i, cid in enumerate(contest_ids):
        start = (datetime(2025, 5, 22, 20, 30, tzinfo=JST) - timedelta(hours=i)).strftime("%Y-%m-%d %H:%M:%S%z")
        rows.append(ROW.format(start=start, cid=cid, title=f"ADT {cid}"))
    return "<table><tbody>" + "\n".join(rows) + "</tbody></table>"


class _FakeClient:
    """Serves archive pages from memory; pages past the end have no table body."""

    def __init__(self, pages):
        self.pages = pages
        self.fetched = []

    def adt_archive_url(self, page):
        return f"archive:{page}"

    async def fetch_html(self, url):
        self.fetched.append(url)
        page = int(url.split(":")[1])
        return self.pages.get(page, "<html><body><p>No contests</p></body></html>")


def test_parse_archive_fixture():
    contests = ContestCrawler.parse_html(read_fixture("contests_page.html"))
    assert [c.id for c in contests] == ["adt_all_20250522_3", "adt_hard_20250522_3", "adt_easy_20250522_2"]
    first = contests[0]
    assert first.title == "AtCoder Daily Training ALL 2025/05/22 20:30start"
    assert first.start_epoch_second == 1747913400
    assert first.duration_second == 3600
    assert first.rate_change == "-"
    assert contests[2].start_epoch_second == 1747904400


def test_parse_without_table_body_is_end_of_listing():
    with pytest.raises(EmptyContents):
        ContestCrawler.parse_html("<html><body>nothing here</body></html>")


def test_parse_broken_row_raises():
    html = "<table><tbody><tr><td>2025-05-22 20:30:00+0900</td><td>no link</td></tr></tbody></table>"
    with pytest.raises(HtmlParseError):
        ContestCrawler.parse_html(html)


def test_crawl_stops_at_newest_stored_contest_across_pages():
    ids = [f"adt_new_{i:02d}" for i in range(30)] + ["adt_all_20250522_3"] + [f"adt_old_{i:02d}" for i in range(19)]
    assert len(ids) == 50
    client = _FakeClient({1: _archive_html(ids[:20]), 2: _archive_html(ids[20:40]), 3: _archive_html(ids[40:])})
    sleep = RecordingSleep()
    crawler = ContestCrawler(client, page_sleep=1.0, sleep=sleep)

    contests = run(crawler.crawl(GLOBAL_SCOPE, "adt_all_20250522_3"))

    assert [c.id for c in contests] == ids[:30]
    assert client.fetched == ["archive:1", "archive:2"]
    assert sleep.delays == [1.0]


def test_crawl_without_boundary_reads_until_listing_ends():
    ids = [f"adt_{i:02d}" for i in range(50)]
    client = _FakeClient({1: _archive_html(ids[:20]), 2: _archive_html(ids[20:40]), 3: _archive_html(ids[40:])})
    contests = run(ContestCrawler(client, sleep=RecordingSleep()).crawl(GLOBAL_SCOPE))
    assert [c.id for c in contests] == ids
    assert client.fetched[-1] == "archive:4"
