import pytest
from pydantic import ValidationError

from adt_sync.models.atcoder import Contest, Submission


def _submission(**overrides):
    data = dict(
        id=100,
        epoch_second=1747913400,
        problem_id="abc001_a",
        contest_id="adt_all_20250522_3",
        user_id="u1",
        language="Python (CPython 3.11.4)",
        point=100.0,
        length=120,
        result="AC",
        execution_time=25,
    )
    data.update(overrides)
    return Submission(**data)


def test_submission_is_accepted_only_for_ac():
    assert _submission().is_accepted()
    assert not _submission(result="WA").is_accepted()
    assert not _submission(result="CE", execution_time=None).is_accepted()


def test_submission_rejects_empty_user_and_negative_id():
    with pytest.raises(ValidationError):
        _submission(user_id="")
    with pytest.raises(ValidationError):
        _submission(id=-1)


def test_contest_is_frozen():
    c = Contest(id="adt_all_20250522_3", start_epoch_second=1747913400, duration_second=3600,
                title="AtCoder Daily Training ALL 2025/05/22 20:30start", rate_change="-")
    with pytest.raises(ValidationError):
        c.title = "changed"


def test_only_final_verdicts_count_as_judged():
    assert _submission().is_judged()
    assert _submission(result="WA").is_judged()
    assert not _submission(result="WJ", execution_time=None).is_judged()
    assert not _submission(result="3/10", execution_time=None).is_judged()
