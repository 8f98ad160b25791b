from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Dict, Optional

from adt_sync.config import Settings
from adt_sync.db.dynamodb_connector import DynamoDBStore, close_client, get_client
from adt_sync.db.errors import StoreError
from adt_sync.services.persistence import BatchPersistence
from adt_sync.services.sync_service import sync_contests, sync_submissions

from .client import AtCoderClient
from .errors import AtCoderClientError
from .spiders.contest_spider import ContestCrawler
from .spiders.submission_spider import SubmissionCrawler

logger = logging.getLogger(__name__)


def _crawler_kwargs(settings: Settings) -> Dict:
    return {
        "page_sleep": settings.crawl_sleep,
        "max_retries": settings.crawl_max_retries,
        "retry_sleep": settings.crawl_retry_sleep,
    }


def build_persistence(settings: Settings) -> BatchPersistence:
    store = DynamoDBStore(settings.require_table(), client=get_client(settings))
    return BatchPersistence.from_settings(store, settings)


async def run_contests(settings: Settings) -> Dict[str, int]:
    persistence = build_persistence(settings)
    async with await AtCoderClient.from_session(
        settings.require_session(), test_contest_id=settings.test_contest_id
    ) as client:
        crawler = ContestCrawler(client, **_crawler_kwargs(settings))
        return await sync_contests(crawler, persistence)


async def run_submissions(settings: Settings) -> Dict[str, int]:
    persistence = build_persistence(settings)
    async with await AtCoderClient.from_session(
        settings.require_session(), test_contest_id=settings.test_contest_id
    ) as client:
        crawler = SubmissionCrawler(client, **_crawler_kwargs(settings))
        return await sync_submissions(
            crawler,
            persistence,
            max_in_memory_submissions=settings.max_in_memory_submissions,
            contest_sleep=settings.crawl_sleep,
        )


JOBS = {
    "contests": run_contests,
    "submissions": run_submissions,
}


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Sync AtCoder Daily Training data into DynamoDB")
    sub = parser.add_subparsers(dest="cmd", required=True)
    sub.add_parser("contests", help="Crawl new ADT contests from the archive and store them")
    sub.add_parser("submissions", help="Crawl new submissions of stored contests and merge AC problems per user")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, ...)")

    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except RuntimeError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("%s", exc)
        return 1
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    job = JOBS[args.cmd]
    try:
        summary = asyncio.run(job(settings))
    except RuntimeError as exc:
        logger.error("Configuration error: %s", exc)
        return 1
    except AtCoderClientError as exc:
        logger.error("Crawl aborted: %s", exc)
        return 1
    except StoreError as exc:
        logger.error("Store failure: %s", exc)
        return 1
    finally:
        close_client()

    logger.info("%s sync completed: %s", args.cmd, summary)
    if summary.get("failed_flushes"):
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
