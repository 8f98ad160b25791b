"""Crawl-and-sync orchestration.

Two passes, both strictly sequential:

- ``sync_contests``: crawl the contest archive down to the newest stored
  contest and store the new contests.
- ``sync_submissions``: for every stored contest (oldest first) crawl the
  submissions newer than its cursor, merge accepted problems into per-user
  sets and only then advance the contest cursor.

A contest cursor is written strictly after the AC data it covers has been
written. If the data write fails the cursor stays put and the same
submissions are crawled again on the next run; the merge is a set union, so
replaying them is harmless.
"""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

from adt_sync.db.errors import NotFound, StoreError
from adt_sync.models.atcoder import Submission
from adt_sync.models.records import ContestRecord, UserAcProblemRecord
from adt_sync.services.crawl.errors import AtCoderClientError, AuthorizationError
from adt_sync.services.crawl.spiders.contest_spider import GLOBAL_SCOPE, ContestCrawler
from adt_sync.services.crawl.spiders.submission_spider import SubmissionCrawler
from adt_sync.services.persistence import BatchPersistence
from adt_sync.services.store import (
    batch_get_contests,
    batch_get_user_ac_problems,
    get_contests,
    get_latest_contest,
    write_contests,
    write_user_ac_problems,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def group_ac_problems_by_user(submissions: Iterable[Submission]) -> Dict[str, Set[str]]:
    """user id -> problem ids of its accepted submissions. Non-AC submissions are ignored."""
    by_user: Dict[str, Set[str]] = defaultdict(set)
    for s in submissions:
        if s.is_accepted():
            by_user[s.user_id].add(s.problem_id)
    return dict(by_user)


def resume_cursor(submissions: Iterable[Submission]) -> Optional[int]:
    """Id to resume the next crawl from, or None when the cursor must not move.

    The newest accepted submission that is older than every still-judging one:
    the crawl stops at the cursor, so a pending submission above it is crawled
    again and picked up once it turns AC.
    """
    submissions = list(submissions)
    pending = [s.id for s in submissions if not s.is_judged()]
    ceiling = min(pending) if pending else None
    accepted = [s.id for s in submissions if s.is_accepted() and (ceiling is None or s.id < ceiling)]
    return max(accepted) if accepted else None


async def sync_user_ac_problems(persistence: BatchPersistence, submissions: Iterable[Submission]) -> Dict[str, int]:
    """Merge accepted problems of the given submissions into the stored per-user sets.

    One batch read for all affected users, one batch write for every user whose
    set actually grew. Running it again with the same submissions changes nothing.
    """
    submissions = list(submissions)
    new_by_user = group_ac_problems_by_user(submissions)
    summary = {"submissions": len(submissions), "users": len(new_by_user), "written": 0, "unchanged": 0}
    if not new_by_user:
        return summary

    existing = await batch_get_user_ac_problems(persistence, new_by_user.keys())

    staged: List[UserAcProblemRecord] = []
    for user_id in sorted(new_by_user):
        record = UserAcProblemRecord.for_user(user_id, new_by_user[user_id])
        stored = existing.get(user_id)
        if stored is not None:
            record = record.merged_with(stored)
            if record.ac_problems == stored.ac_problems:
                summary["unchanged"] += 1
                continue
        staged.append(record)

    summary["written"] = await write_user_ac_problems(persistence, staged)
    logger.info("Synced AC problems: %d users affected, %d records written, %d unchanged",
                summary["users"], summary["written"], summary["unchanged"])
    return summary


class AcSubmissionBuffer:
    """Accepted submissions waiting to be synced, plus the contest cursors they cover."""

    def __init__(self, threshold: int) -> None:
        if threshold < 1:
            raise ValueError("threshold must be positive")
        self.threshold = threshold
        self.submissions: List[Submission] = []
        self.cursors: Dict[str, ContestRecord] = {}

    def __len__(self) -> int:
        return len(self.submissions)

    def add(self, contest: ContestRecord, ac_submissions: List[Submission], cursor: Optional[int]) -> None:
        self.submissions.extend(ac_submissions)
        if cursor is None:
            return
        pending = self.cursors.get(contest.contest_id, contest)
        self.cursors[contest.contest_id] = pending.with_cursor(cursor)

    @property
    def should_flush(self) -> bool:
        return len(self.submissions) >= self.threshold

    def drain(self) -> Tuple[List[Submission], List[ContestRecord]]:
        submissions, cursors = self.submissions, list(self.cursors.values())
        self.submissions, self.cursors = [], {}
        return submissions, cursors


async def flush_buffer(persistence: BatchPersistence, buffer: AcSubmissionBuffer) -> Dict[str, int]:
    """Sync buffered submissions, then persist the cursors they cover (in that order)."""
    submissions, cursors = buffer.drain()
    if not submissions:
        return {"submissions": 0, "written": 0, "cursors": 0}
    result = await sync_user_ac_problems(persistence, submissions)
    result["cursors"] = await write_contests(persistence, cursors)
    logger.info("Advanced cursors of %d contests", result["cursors"])
    return result


async def sync_contests(
    crawler: ContestCrawler,
    persistence: BatchPersistence,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """Crawl contests newer than the newest stored one and store them (oldest first)."""
    try:
        latest = await get_latest_contest(persistence, now=now)
        until: Optional[str] = latest.contest_id
        logger.info("Latest stored contest: %s", until)
    except NotFound:
        logger.warning("No contests stored yet, crawling the whole archive")
        until = None

    contests = await crawler.crawl(GLOBAL_SCOPE, until)
    contests = sorted(contests, key=lambda c: c.start_epoch_second)
    records = [ContestRecord.from_contest(c) for c in contests]

    # A stale boundary makes the crawl re-fetch stored contests; keep their cursors
    stored = await batch_get_contests(persistence, records) if records else {}
    for i, record in enumerate(records):
        previous = stored.get(record.contest_id)
        if previous is not None and previous.last_fetched_submission_id is not None:
            records[i] = record.with_cursor(previous.last_fetched_submission_id)

    logger.info("Total contests to write: %d", len(records))
    written = await write_contests(persistence, records)
    return {"crawled": len(contests), "written": written, "already_stored": len(stored)}


async def sync_submissions(
    crawler: SubmissionCrawler,
    persistence: BatchPersistence,
    *,
    max_in_memory_submissions: int = 10000,
    contest_sleep: float = 1.0,
    sleep: Optional[Sleep] = None,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """Crawl new submissions of every stored contest and merge AC problems per user.

    Contest-local failures (parse errors, exhausted retries) skip that contest.
    Authorization failures abort the run: everything flushed so far stays
    written, the in-memory tail is dropped and re-crawled next time.
    """
    sleep = sleep or asyncio.sleep
    contests = await get_contests(persistence, now=now)
    contests.reverse()
    logger.info("Loaded %d stored contests", len(contests))

    buffer = AcSubmissionBuffer(max_in_memory_submissions)
    summary = {
        "contests": len(contests),
        "skipped": 0,
        "ac_submissions": 0,
        "flushes": 0,
        "failed_flushes": 0,
    }

    async def _flush(label: str) -> None:
        if not len(buffer):
            return
        pending = sorted(buffer.cursors)
        logger.info("Writing %d %s AC submissions", len(buffer), label)
        try:
            await flush_buffer(persistence, buffer)
        except StoreError as exc:
            summary["failed_flushes"] += 1
            logger.error("Failed to write AC submissions of contests %s, their cursors were not advanced: %s",
                         ", ".join(pending), exc)
            return
        summary["flushes"] += 1

    for record in contests:
        # keep the request rate steady across contest boundaries
        await sleep(contest_sleep)
        logger.info("Crawling submissions for contest %s (cursor=%s)",
                    record.contest_id, record.last_fetched_submission_id)
        try:
            crawled = await crawler.crawl(record.contest_id, record.last_fetched_submission_id)
        except AuthorizationError as exc:
            logger.error("Authorization failed on contest %s, aborting run (renew ATCODER_REVEL_SESSION): %s",
                         record.contest_id, exc)
            raise
        except AtCoderClientError as exc:
            summary["skipped"] += 1
            logger.error("Skipping contest %s: %s", record.contest_id, exc)
            continue

        ac_submissions = [s for s in crawled if s.is_accepted()]
        if not ac_submissions:
            logger.info("No new AC submissions for contest %s", record.contest_id)
            continue

        cursor = resume_cursor(crawled)
        if cursor is None:
            logger.info("Contest %s has submissions still being judged, keeping its cursor", record.contest_id)
        buffer.add(record, ac_submissions, cursor)
        summary["ac_submissions"] += len(ac_submissions)

        if buffer.should_flush:
            logger.warning("Reached in-memory submission limit %d, flushing", buffer.threshold)
            await _flush("buffered")

    await _flush("remaining")
    logger.info("Submission sync finished: %s", summary)
    return summary
