from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

# Final verdicts. Anything else ("WJ", "WR", "3/10", ...) may still change.
JUDGED_RESULTS = frozenset({"AC", "WA", "TLE", "MLE", "RE", "CE", "OLE", "IE", "QLE"})


class Contest(BaseModel):
    """A contest row from the AtCoder Daily Training archive."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Contest id, e.g. adt_all_20250522_3")
    start_epoch_second: int = Field(..., ge=0)
    duration_second: int = Field(..., ge=0)
    title: str
    rate_change: str = Field(..., description="Rating change category as shown on the archive page")


class Submission(BaseModel):
    """A row from a contest's submission list."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0, description="Submission id, assigned increasing by AtCoder")
    epoch_second: int = Field(..., ge=0)
    problem_id: str = Field(..., min_length=1)
    contest_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    language: str
    point: float
    length: int = Field(..., ge=0, description="Code length in bytes")
    result: str = Field(..., description="Verdict text; 'AC' means accepted")
    execution_time: Optional[int] = Field(None, description="Execution time in ms, absent for CE/WJ")

    def is_accepted(self) -> bool:
        return self.result == "AC"

    def is_judged(self) -> bool:
        return self.result in JUDGED_RESULTS
