"""Bounded-batch, retrying persistence on top of a partitioned key-value store.

The store answers a batch request with the subset it could not process
(throttling, capacity). That subset becomes the whole input of the next
attempt, with an exponential backoff sleep in between, until nothing is left
or the retry ceiling is hit. Hitting the ceiling fails the entire call with
``RetryLimitExceeded``; batches committed before that point stay committed.

Chunking is invisible to callers: ``batch_write`` and ``batch_get`` accept any
number of items/keys and split them into store-sized requests.
"""
from __future__ import annotations

import asyncio
import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

from adt_sync.config import DDB_BATCH_GET_LIMIT, DDB_BATCH_WRITE_LIMIT, Settings
from adt_sync.db.errors import RetryLimitExceeded

logger = logging.getLogger(__name__)

Item = Dict[str, Any]
ItemKey = Tuple[Any, ...]
Sleep = Callable[[float], Awaitable[None]]


class KeyValueStore(Protocol):
    """What the persistence layer needs from a store (see DynamoDBStore)."""

    async def batch_write_items(self, items: List[Item]) -> List[Item]:
        """Write items; return the ones that were not processed."""
        ...

    async def batch_get_items(self, keys: List[Item]) -> Tuple[List[Item], List[Item]]:
        """Read keys; return (found items, unprocessed keys)."""
        ...

    async def query(
        self,
        partition: str,
        *,
        exclusive_start_key: Optional[Item] = None,
        limit: Optional[int] = None,
        scan_forward: bool = False,
    ) -> Tuple[List[Item], Optional[Item]]:
        """Return one page of a partition plus the continuation key (None when done)."""
        ...

    async def get_item(self, key: Item) -> Optional[Item]:
        ...


def chunked(seq: Sequence[Item], size: int) -> Iterator[List[Item]]:
    for start in range(0, len(seq), size):
        yield list(seq[start:start + size])


class BatchPersistence:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        max_batch_write: int = DDB_BATCH_WRITE_LIMIT,
        max_batch_get: int = DDB_BATCH_GET_LIMIT,
        max_retries: int = 5,
        base_backoff: float = 0.1,
        key_fields: Tuple[str, ...] = ("PK", "SK"),
        sleep: Optional[Sleep] = None,
    ) -> None:
        if max_batch_write < 1 or max_batch_get < 1:
            raise ValueError("batch sizes must be positive")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.store = store
        self.max_batch_write = int(max_batch_write)
        self.max_batch_get = int(max_batch_get)
        self.max_retries = int(max_retries)
        self.base_backoff = float(base_backoff)
        self.key_fields = tuple(key_fields)
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, store: KeyValueStore, settings: Settings, **kwargs) -> "BatchPersistence":
        return cls(
            store,
            max_batch_write=settings.max_batch_write,
            max_batch_get=settings.max_batch_get,
            max_retries=settings.ddb_max_retries,
            base_backoff=settings.ddb_base_backoff,
            **kwargs,
        )

    def key_of(self, item: Item) -> ItemKey:
        return tuple(item.get(f) for f in self.key_fields)

    # --- Writes ---
    async def batch_write(self, items: Iterable[Item]) -> int:
        """Durably write every item or raise. Returns the number of distinct items written.

        Items sharing a key are collapsed (the last one wins) because the store
        rejects duplicate keys inside one batch.
        """
        unique: Dict[ItemKey, Item] = {}
        for item in items:
            unique[self.key_of(item)] = item
        pending = list(unique.values())
        if not pending:
            return 0

        batches = list(chunked(pending, self.max_batch_write))
        for index, batch in enumerate(batches, start=1):
            logger.debug("batch_write: submitting batch %d/%d (%d items)", index, len(batches), len(batch))
            await self._run_with_retries("batch_write", batch, self._write_once)
        logger.info("batch_write: wrote %d items in %d batches", len(pending), len(batches))
        return len(pending)

    async def _write_once(self, batch: List[Item]) -> Tuple[List[Item], List[Item]]:
        unprocessed = await self.store.batch_write_items(batch)
        return [], list(unprocessed or [])

    # --- Reads ---
    async def batch_get(self, keys: Iterable[Item]) -> Dict[ItemKey, Item]:
        """Fetch items by key. Missing keys are simply absent from the result."""
        unique: Dict[ItemKey, Item] = {}
        for key in keys:
            unique.setdefault(self.key_of(key), key)
        pending = list(unique.values())
        result: Dict[ItemKey, Item] = {}
        for batch in chunked(pending, self.max_batch_get):
            found = await self._run_with_retries("batch_get", batch, self._get_once)
            for item in found:
                result[self.key_of(item)] = item
        logger.debug("batch_get: %d keys requested, %d items found", len(pending), len(result))
        return result

    async def _get_once(self, batch: List[Item]) -> Tuple[List[Item], List[Item]]:
        found, unprocessed = await self.store.batch_get_items(batch)
        return list(found or []), list(unprocessed or [])

    async def get(self, key: Item) -> Optional[Item]:
        return await self.store.get_item(key)

    async def _run_with_retries(
        self,
        operation: str,
        batch: List[Item],
        send: Callable[[List[Item]], Awaitable[Tuple[List[Item], List[Item]]]],
    ) -> List[Item]:
        collected: List[Item] = []
        pending = batch
        backoff = self.base_backoff
        retries = 0
        while True:
            found, pending = await send(pending)
            collected.extend(found)
            if not pending:
                return collected
            if retries >= self.max_retries:
                logger.error("%s: giving up with %d unprocessed item(s) after %d attempts",
                             operation, len(pending), retries + 1)
                raise RetryLimitExceeded(operation, retries + 1, len(pending))
            retries += 1
            logger.warning("%s: %d unprocessed item(s), retry %d/%d in %.2fs",
                           operation, len(pending), retries, self.max_retries, backoff)
            await self._sleep(backoff)
            backoff *= 2

    # --- Queries ---
    async def query(
        self,
        partition: str,
        *,
        max_items: Optional[int] = None,
        scan_forward: bool = False,
    ) -> List[Item]:
        """Read a whole partition (newest first by default), following continuation keys."""
        items: List[Item] = []
        if max_items is not None and max_items <= 0:
            return items
        start_key: Optional[Item] = None
        while True:
            remaining = None if max_items is None else max_items - len(items)
            page, start_key = await self.store.query(
                partition,
                exclusive_start_key=start_key,
                limit=remaining,
                scan_forward=scan_forward,
            )
            for item in page:
                items.append(item)
                if max_items is not None and len(items) >= max_items:
                    return items
            if not start_key:
                return items

    async def query_partitions(
        self,
        partitions: Iterable[str],
        *,
        max_items: Optional[int] = None,
        scan_forward: bool = False,
    ) -> List[Item]:
        """Query several partitions in the given order, stopping once max_items are collected."""
        items: List[Item] = []
        for partition in partitions:
            remaining = None if max_items is None else max_items - len(items)
            if remaining is not None and remaining <= 0:
                break
            items.extend(await self.query(partition, max_items=remaining, scan_forward=scan_forward))
        return items
