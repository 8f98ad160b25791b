from datetime import datetime
from typing import Dict, Iterable, List, Optional

from adt_sync.db.errors import NotFound
from adt_sync.models.records import ContestRecord, contest_partitions_descending
from adt_sync.services.persistence import BatchPersistence


async def get_contests(
    persistence: BatchPersistence,
    *,
    max_items: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[ContestRecord]:
    """Return stored contests, newest first, scanning monthly partitions back to the first ADT month."""
    items = await persistence.query_partitions(contest_partitions_descending(now), max_items=max_items)
    return [ContestRecord.from_item(item) for item in items]


async def get_latest_contest(persistence: BatchPersistence, *, now: Optional[datetime] = None) -> ContestRecord:
    """Return the most recent stored contest or raise NotFound when the table has none."""
    records = await get_contests(persistence, max_items=1, now=now)
    if not records:
        raise NotFound("No contests stored yet")
    return records[0]


async def batch_get_contests(
    persistence: BatchPersistence, records: Iterable[ContestRecord]
) -> Dict[str, ContestRecord]:
    """Load the stored versions of the given contests, keyed by contest id."""
    found = await persistence.batch_get(r.key() for r in records)
    stored = [ContestRecord.from_item(item) for item in found.values()]
    return {r.contest_id: r for r in stored}


async def write_contests(persistence: BatchPersistence, records: Iterable[ContestRecord]) -> int:
    return await persistence.batch_write(r.to_item() for r in records)
