from typing import Dict, Iterable

from adt_sync.db.errors import NotFound
from adt_sync.models.records import UserAcProblemRecord, user_ac_key
from adt_sync.services.persistence import BatchPersistence


async def get_user_ac_problems(persistence: BatchPersistence, user_id: str) -> UserAcProblemRecord:
    """Return the user's accepted problems or raise NotFound."""
    item = await persistence.get(user_ac_key(user_id))
    if not item:
        raise NotFound(f"No AC problems stored for user {user_id}")
    return UserAcProblemRecord.from_item(item)


async def batch_get_user_ac_problems(
    persistence: BatchPersistence, user_ids: Iterable[str]
) -> Dict[str, UserAcProblemRecord]:
    """Load stored records for many users at once, keyed by user id. Unknown users are omitted."""
    found = await persistence.batch_get(user_ac_key(uid) for uid in user_ids)
    records = [UserAcProblemRecord.from_item(item) for item in found.values()]
    return {r.user_id: r for r in records}


async def write_user_ac_problems(persistence: BatchPersistence, records: Iterable[UserAcProblemRecord]) -> int:
    return await persistence.batch_write(r.to_item() for r in records)
