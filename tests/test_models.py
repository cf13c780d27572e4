from __future__ import annotations

import pytest
from pydantic import ValidationError

from lifegit.models import (
    COMMIT_TYPE_INFO,
    Branch,
    BranchStatus,
    CommitCategory,
    CommitType,
    TaskItem,
    TaskPlan,
    TimeScope,
    VersionRecord,
)


def _task(title: str, order: int, *, completed: bool = False, minutes: int = 30) -> TaskItem:
    return TaskItem(title=title, estimated_duration=minutes, order_index=order, is_completed=completed)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("weekly", TimeScope.WEEKLY),
        (" Monthly ", TimeScope.MONTHLY),
        ("yearly", TimeScope.DAILY),
        (None, TimeScope.DAILY),
        (TimeScope.WEEKLY, TimeScope.WEEKLY),
    ],
)
def test_time_scope_parse(raw, expected) -> None:
    assert TimeScope.parse(raw) is expected


def test_every_commit_type_has_metadata() -> None:
    assert set(COMMIT_TYPE_INFO) == set(CommitType)
    assert CommitType.TASK_COMPLETE.category is CommitCategory.ACHIEVEMENT
    assert CommitType.CUSTOM.default_message
    assert BranchStatus.ABANDONED.display_name == "Abandoned"


def test_task_item_validation() -> None:
    with pytest.raises(ValidationError):
        TaskItem(title="  ", estimated_duration=10)
    with pytest.raises(ValidationError):
        TaskItem(title="Read", estimated_duration=0)

    task = TaskItem(title="  Read  ", estimated_duration=10)
    assert task.title == "Read"
    with pytest.raises(ValidationError):
        task.estimated_duration = -5


@pytest.mark.parametrize(("minutes", "text"), [(45, "45 min"), (120, "2 h"), (90, "1 h 30 min")])
def test_formatted_duration(minutes: int, text: str) -> None:
    assert TaskItem(title="x", estimated_duration=minutes).formatted_duration == text


def test_task_mark_completed_and_incomplete() -> None:
    task = TaskItem(title="Run", estimated_duration=20)
    task.mark_completed()
    assert task.is_completed and task.completed_at is not None

    task.mark_incomplete()
    assert not task.is_completed
    assert task.completed_at is None


def test_plan_renumber_is_dense() -> None:
    plan = TaskPlan(branch_id="b", total_duration="1 week", tasks=[_task("c", 9), _task("a", 2), _task("b", 5)])

    plan.renumber()

    assert [task.title for task in plan.tasks] == ["a", "b", "c"]
    assert [task.order_index for task in plan.tasks] == [0, 1, 2]


def test_branch_progress_follows_plan() -> None:
    plan = TaskPlan(
        branch_id="b",
        total_duration="1 week",
        tasks=[_task("a", 0, completed=True), _task("b", 1), _task("c", 2), _task("d", 3)],
    )
    branch = Branch(name="Goal")

    assert branch.recompute_progress(plan) == 0.25
    assert plan.total_estimated_duration == 120
    assert branch.recompute_progress(None) == 0.0
    assert branch.recompute_progress(TaskPlan(branch_id="b", total_duration="-")) == 0.0


def test_version_record_is_immutable() -> None:
    record = VersionRecord(version="v1.1", trigger_branch_name="Goal", description="done")

    with pytest.raises(ValidationError):
        record.version = "v9.9"
