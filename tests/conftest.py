import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest


def read_fixture(name: str) -> str:
    p = Path(__file__).parent / "fixtures" / name
    return p.read_text(encoding="utf-8")


def run(coro):
    return asyncio.run(coro)


class RecordingSleep:
    """Async sleep stand-in that only records the requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeStore:
    """In-memory KeyValueStore with scriptable unprocessed results and failures.

    ``unprocessed_writes`` / ``unprocessed_gets``: per call, how many of the
    trailing items/keys to hand back as unprocessed (0 once the list runs out).
    ``always_unprocessed``: every batch call leaves everything unprocessed.
    ``write_errors``: per batch_write call, an exception to raise or None.
    """

    def __init__(self, page_size: Optional[int] = None):
        self.items: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.calls: List[Tuple[str, int]] = []
        self.unprocessed_writes: List[int] = []
        self.unprocessed_gets: List[int] = []
        self.always_unprocessed = False
        self.write_errors: List[Optional[Exception]] = []
        self.page_size = page_size

    def put(self, item: Dict[str, Any]) -> None:
        self.items[(item["PK"], item["SK"])] = dict(item)

    def _split(self, batch, script):
        if self.always_unprocessed:
            return [], list(batch)
        n = script.pop(0) if script else 0
        cut = len(batch) - min(n, len(batch))
        return list(batch[:cut]), list(batch[cut:])

    async def batch_write_items(self, items):
        self.calls.append(("batch_write", len(items)))
        error = self.write_errors.pop(0) if self.write_errors else None
        if error is not None:
            raise error
        done, left = self._split(items, self.unprocessed_writes)
        for item in done:
            self.put(item)
        return left

    async def batch_get_items(self, keys):
        self.calls.append(("batch_get", len(keys)))
        done, left = self._split(keys, self.unprocessed_gets)
        found = [dict(self.items[(k["PK"], k["SK"])]) for k in done if (k["PK"], k["SK"]) in self.items]
        return found, left

    async def query(self, partition, *, exclusive_start_key=None, limit=None, scan_forward=False):
        self.calls.append(("query", limit or 0))
        rows = sorted((v for (pk, _), v in self.items.items() if pk == partition), key=lambda i: i["SK"])
        if not scan_forward:
            rows.reverse()
        if exclusive_start_key:
            sks = [r["SK"] for r in rows]
            rows = rows[sks.index(exclusive_start_key["SK"]) + 1:]
        size = min(x for x in (limit, self.page_size, len(rows)) if x is not None)
        page = [dict(r) for r in rows[:size]]
        last_key = {"PK": partition, "SK": page[-1]["SK"]} if page and size < len(rows) else None
        return page, last_key

    async def get_item(self, key):
        self.calls.append(("get_item", 1))
        item = self.items.get((key["PK"], key["SK"]))
        return dict(item) if item else None


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def sleeps():
    return RecordingSleep()
