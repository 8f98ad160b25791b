import logging
from typing import Optional

from fastapi import APIRouter, Header
from fastapi.responses import JSONResponse

from adt_sync.config import Settings
from adt_sync.db.dynamodb_connector import DynamoDBStore, get_client
from adt_sync.db.errors import NotFound, StoreError
from adt_sync.services.persistence import BatchPersistence
from adt_sync.services.store import get_user_ac_problems

logger = logging.getLogger(__name__)

router = APIRouter(tags=["problems"])


_settings_cache: Optional[Settings] = None
_persistence_cache: Optional[BatchPersistence] = None


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
    return _settings_cache


def get_persistence() -> BatchPersistence:
    global _persistence_cache
    if _persistence_cache is None:
        settings = get_settings()
        store = DynamoDBStore(settings.require_table(), client=get_client(settings))
        _persistence_cache = BatchPersistence.from_settings(store, settings)
    return _persistence_cache


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


@router.get("/users/{user_id}/problems")
async def api_get_user_problems(user_id: str, x_extension_name: Optional[str] = Header(default=None)):
    """Problem ids the user has solved in AtCoder Daily Training, sorted ascending."""
    try:
        expected = get_settings().extension_name
    except RuntimeError as exc:
        logger.error("Invalid API configuration: %s", exc)
        return _error(500, "internal_error", "An unexpected error occurred.")
    if not expected or x_extension_name != expected:
        logger.warning("Rejected request for user %s: x-extension-name=%r", user_id, x_extension_name)
        return _error(403, "forbidden", "Access is forbidden.")

    try:
        record = await get_user_ac_problems(get_persistence(), user_id)
    except NotFound:
        # Unknown users have simply not solved anything yet
        return {"problem_ids": []}
    except (StoreError, RuntimeError) as exc:
        logger.error("Failed to load AC problems of user %s: %s", user_id, exc)
        return _error(500, "internal_error", "An unexpected error occurred.")
    return {"problem_ids": record.ac_problems}
