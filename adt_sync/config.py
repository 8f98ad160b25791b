"""Runtime configuration for the sync jobs and the read API.

All knobs come from environment variables (optionally from a .env file at the
project root). Components never read the environment themselves; they receive
the values as constructor arguments built from a ``Settings`` instance.

Variables:

- ATCODER_REVEL_SESSION (required for crawls), ATCODER_TEST_CONTEST_ID
- DYNAMODB_TABLE (required), AWS_REGION, DYNAMODB_ENDPOINT_URL
- CRAWL_SLEEP_SECONDS, CRAWL_MAX_RETRIES, CRAWL_RETRY_SLEEP_SECONDS
- DDB_MAX_BATCH_WRITE, DDB_MAX_BATCH_GET, DDB_MAX_RETRIES, DDB_BASE_BACKOFF_SECONDS
- MAX_IN_MEMORY_SUBMISSIONS
- EXTENSION_NAME, EXTENSION_ORIGINS
- LOG_LEVEL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

# DynamoDB hard limits per request
DDB_BATCH_WRITE_LIMIT = 25
DDB_BATCH_GET_LIMIT = 100


def _load_env_from_file() -> None:
    """Load environment variables from a .env file at the project root if present.

    Only sets variables that aren't already present in the process environment.
    """
    root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    env_path = os.path.join(root_dir, ".env")
    if not os.path.isfile(env_path):
        return
    try:
        with open(env_path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except OSError:
        return
    for line in lines:
        s = line.strip()
        if not s or s.startswith("#") or "=" not in s:
            continue
        key, val = s.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")
        if key and not os.environ.get(key):
            os.environ[key] = val


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be a number, got {raw!r}")
    if value < minimum:
        raise RuntimeError(f"Environment variable {name} must be >= {minimum}, got {raw!r}")
    return value


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}")
    if value < minimum:
        raise RuntimeError(f"Environment variable {name} must be >= {minimum}, got {raw!r}")
    return value


def _split_origins(raw: Optional[str]) -> List[str]:
    return [o.strip() for o in (raw or "").split(",") if o.strip()]


@dataclass
class Settings:
    table_name: Optional[str] = None
    aws_region: str = "ap-northeast-1"
    dynamodb_endpoint_url: Optional[str] = None

    revel_session: Optional[str] = None
    test_contest_id: str = "abc001"

    crawl_sleep: float = 1.0
    crawl_max_retries: int = 3
    crawl_retry_sleep: float = 2.0

    max_batch_write: int = DDB_BATCH_WRITE_LIMIT
    max_batch_get: int = DDB_BATCH_GET_LIMIT
    ddb_max_retries: int = 5
    ddb_base_backoff: float = 0.1

    max_in_memory_submissions: int = 10000

    extension_name: Optional[str] = None
    extension_origins: List[str] = field(default_factory=list)

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        _load_env_from_file()
        return cls(
            table_name=os.getenv("DYNAMODB_TABLE") or None,
            aws_region=os.getenv("AWS_REGION") or "ap-northeast-1",
            dynamodb_endpoint_url=os.getenv("DYNAMODB_ENDPOINT_URL") or None,
            revel_session=os.getenv("ATCODER_REVEL_SESSION") or None,
            test_contest_id=os.getenv("ATCODER_TEST_CONTEST_ID") or "abc001",
            crawl_sleep=_env_float("CRAWL_SLEEP_SECONDS", 1.0),
            crawl_max_retries=_env_int("CRAWL_MAX_RETRIES", 3),
            crawl_retry_sleep=_env_float("CRAWL_RETRY_SLEEP_SECONDS", 2.0),
            max_batch_write=min(_env_int("DDB_MAX_BATCH_WRITE", DDB_BATCH_WRITE_LIMIT, minimum=1), DDB_BATCH_WRITE_LIMIT),
            max_batch_get=min(_env_int("DDB_MAX_BATCH_GET", DDB_BATCH_GET_LIMIT, minimum=1), DDB_BATCH_GET_LIMIT),
            ddb_max_retries=_env_int("DDB_MAX_RETRIES", 5),
            ddb_base_backoff=_env_float("DDB_BASE_BACKOFF_SECONDS", 0.1),
            max_in_memory_submissions=_env_int("MAX_IN_MEMORY_SUBMISSIONS", 10000, minimum=1),
            extension_name=os.getenv("EXTENSION_NAME") or None,
            extension_origins=_split_origins(os.getenv("EXTENSION_ORIGINS")),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )

    def require_table(self) -> str:
        if not self.table_name:
            raise RuntimeError(
                "Environment variable DYNAMODB_TABLE is not set.\n"
                "Define it in your environment or in a .env file at the project root."
            )
        return self.table_name

    def require_session(self) -> str:
        if not self.revel_session:
            raise RuntimeError(
                "Environment variable ATCODER_REVEL_SESSION is not set.\n"
                "Copy the REVEL_SESSION cookie of a logged-in AtCoder browser session into it."
            )
        return self.revel_session
