"""Store-side record shapes (single DynamoDB table, PK/SK design).

- ContestRecord      PK "CONTEST#{YYYYMM}", SK "{start_epoch_second:010}-{difficulty:02}"
- UserAcProblemRecord PK "USER_AC#{user_id}", SK "AC"

Records convert to and from plain item dicts (attribute name -> python value);
the DynamoDB wire typing lives in ``adt_sync.db.dynamodb_connector``.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from adt_sync.db.errors import DeserializationError
from adt_sync.models.atcoder import Contest

PK_FIELD = "PK"
SK_FIELD = "SK"

CONTEST_PK_PREFIX = "CONTEST#"
USER_AC_PK_PREFIX = "USER_AC#"
USER_AC_SK = "AC"

# First month of AtCoder Daily Training
ADT_START_YEAR = 2023
ADT_START_MONTH = 10

Item = Dict[str, Any]


def contest_partition_key(year_month: str) -> str:
    return f"{CONTEST_PK_PREFIX}{year_month}"


def contest_partition_from_epoch(start_epoch_second: int) -> str:
    try:
        dt = datetime.fromtimestamp(int(start_epoch_second), tz=timezone.utc)
        year_month = dt.strftime("%Y%m")
    except (OverflowError, OSError, ValueError):
        year_month = f"{ADT_START_YEAR:04d}{ADT_START_MONTH:02d}"
    return contest_partition_key(year_month)


def difficulty_order(contest_id: str) -> int:
    if "_easy" in contest_id:
        return 1
    if "_medium" in contest_id:
        return 2
    if "_hard" in contest_id:
        return 3
    return 4  # "_all" and anything unknown


def contest_sort_key(start_epoch_second: int, contest_id: str) -> str:
    return f"{int(start_epoch_second):010d}-{difficulty_order(contest_id):02d}"


def contest_partitions_descending(now: Optional[datetime] = None) -> List[str]:
    """All contest partition keys from the current month back to the first ADT month."""
    now = now or datetime.now(timezone.utc)
    year, month = now.year, now.month
    pks: List[str] = []
    while (year, month) >= (ADT_START_YEAR, ADT_START_MONTH):
        pks.append(contest_partition_key(f"{year:04d}{month:02d}"))
        if month == 1:
            year, month = year - 1, 12
        else:
            month -= 1
    return pks


def user_ac_key(user_id: str) -> Item:
    return {PK_FIELD: f"{USER_AC_PK_PREFIX}{user_id}", SK_FIELD: USER_AC_SK}


def _plain(item: Item) -> Item:
    # boto3 hands numbers back as Decimal; every numeric field we store is integral
    return {k: int(v) if isinstance(v, Decimal) else v for k, v in item.items()}


class ContestRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    pk: str
    sk: str
    contest_id: str = Field(..., min_length=1)
    title: Optional[str] = None
    duration_second: Optional[int] = None
    rate_change: Optional[str] = None
    last_fetched_submission_id: Optional[int] = Field(
        None, ge=0, description="Newest submission id already synced for this contest"
    )

    @classmethod
    def from_contest(cls, contest: Contest, last_fetched_submission_id: Optional[int] = None) -> "ContestRecord":
        return cls(
            pk=contest_partition_from_epoch(contest.start_epoch_second),
            sk=contest_sort_key(contest.start_epoch_second, contest.id),
            contest_id=contest.id,
            title=contest.title,
            duration_second=contest.duration_second,
            rate_change=contest.rate_change,
            last_fetched_submission_id=last_fetched_submission_id,
        )

    @classmethod
    def from_item(cls, item: Item) -> "ContestRecord":
        data = _plain(item)
        try:
            return cls(
                pk=data.get(PK_FIELD),
                sk=data.get(SK_FIELD),
                contest_id=data.get("contest_id"),
                title=data.get("title"),
                duration_second=data.get("duration_second"),
                rate_change=data.get("rate_change"),
                last_fetched_submission_id=data.get("last_fetched_submission_id"),
            )
        except ValidationError as exc:
            raise DeserializationError(f"Invalid contest item {item!r}: {exc}") from exc

    def to_item(self) -> Item:
        item: Item = {PK_FIELD: self.pk, SK_FIELD: self.sk, "contest_id": self.contest_id}
        for name in ("title", "duration_second", "rate_change", "last_fetched_submission_id"):
            value = getattr(self, name)
            if value is not None:
                item[name] = value
        return item

    def key(self) -> Item:
        return {PK_FIELD: self.pk, SK_FIELD: self.sk}

    @property
    def start_epoch_second(self) -> int:
        head = self.sk.split("-", 1)[0]
        return int(head) if head.isdigit() else 0

    def with_cursor(self, submission_id: int) -> "ContestRecord":
        """Return a copy whose cursor is advanced to submission_id (never moved backwards)."""
        current = self.last_fetched_submission_id
        if current is not None and current >= submission_id:
            return self
        return self.model_copy(update={"last_fetched_submission_id": submission_id})


class UserAcProblemRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    pk: str
    sk: str = USER_AC_SK
    ac_problems: List[str] = Field(default_factory=list)

    @field_validator("ac_problems")
    @classmethod
    def _sorted_unique(cls, v: List[str]) -> List[str]:
        return sorted(set(v))

    @classmethod
    def for_user(cls, user_id: str, problems: Iterable[str]) -> "UserAcProblemRecord":
        key = user_ac_key(user_id)
        return cls(pk=key[PK_FIELD], sk=key[SK_FIELD], ac_problems=list(problems))

    @classmethod
    def from_item(cls, item: Item) -> "UserAcProblemRecord":
        try:
            return cls(
                pk=item.get(PK_FIELD),
                sk=item.get(SK_FIELD),
                ac_problems=list(item.get("ac_problems") or []),
            )
        except (ValidationError, TypeError) as exc:
            raise DeserializationError(f"Invalid user AC item {item!r}: {exc}") from exc

    def to_item(self) -> Item:
        return {PK_FIELD: self.pk, SK_FIELD: self.sk, "ac_problems": list(self.ac_problems)}

    def key(self) -> Item:
        return {PK_FIELD: self.pk, SK_FIELD: self.sk}

    @property
    def user_id(self) -> str:
        if self.pk.startswith(USER_AC_PK_PREFIX):
            return self.pk[len(USER_AC_PK_PREFIX):]
        return ""

    def merged_with(self, other: "UserAcProblemRecord") -> "UserAcProblemRecord":
        """Union of both problem sets (sorted, deduplicated)."""
        return self.model_copy(update={"ac_problems": sorted(set(self.ac_problems) | set(other.ac_problems))})
