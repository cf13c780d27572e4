from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from lifegit.commits import CommitRecorder, commit_day
from lifegit.errors import InvalidInputError
from lifegit.models import Commit, CommitType, TaskItem
from lifegit.storage import InMemoryRepositories

NOW = datetime(2025, 3, 14, 18, 30, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_create_validates_and_stamps() -> None:
    repos = InMemoryRepositories()
    recorder = CommitRecorder(repos.commits, clock=Clock(NOW))

    async def scenario() -> Commit:
        with pytest.raises(InvalidInputError):
            await recorder.create("   ", CommitType.LEARNING, "b1")
        return await recorder.create("  Learned 20 words  ", CommitType.LEARNING, "b1")

    commit = asyncio.run(scenario())

    assert commit.message == "Learned 20 words"
    assert commit.timestamp == NOW
    assert asyncio.run(recorder.count("b1")) == 1


def test_quick_task_and_milestone_commits() -> None:
    repos = InMemoryRepositories()
    recorder = CommitRecorder(repos.commits, clock=Clock(NOW))
    task = TaskItem(title="Read chapter 3", estimated_duration=45)

    async def scenario():
        quick = await recorder.create_quick(CommitType.EXERCISE, "b1")
        custom = await recorder.create_quick(CommitType.EXERCISE, "b1", "Ran 5km")
        done = await recorder.create_task_completion(task, "b1")
        milestone = await recorder.create_milestone("Halfway there", "b1")
        return quick, custom, done, milestone

    quick, custom, done, milestone = asyncio.run(scenario())

    assert quick.message == CommitType.EXERCISE.default_message
    assert custom.message == "Ran 5km"
    assert done.message == "Completed task: Read chapter 3"
    assert done.type is CommitType.TASK_COMPLETE
    assert done.related_task_id == task.id
    assert milestone.type is CommitType.MILESTONE


def test_update_delete_and_queries() -> None:
    repos = InMemoryRepositories()
    clock = Clock(NOW - timedelta(days=2))
    recorder = CommitRecorder(repos.commits, clock=clock)

    async def scenario():
        old = await recorder.create("Read a paper", CommitType.READING, "b1")
        clock.now = NOW
        new = await recorder.create("Wrote notes", CommitType.LEARNING, "b1")
        other = await recorder.create("Called mum", CommitType.SOCIAL, "b2")

        updated = await recorder.update(new, message="Wrote detailed notes", commit_type=CommitType.REFLECTION)
        with pytest.raises(InvalidInputError):
            await recorder.update(new, message=" ")
        await recorder.delete(other)

        return (
            updated,
            await recorder.for_branch("b1"),
            await recorder.for_branch_by_type("b1", CommitType.READING),
            await recorder.in_range(NOW - timedelta(days=1), NOW),
            await recorder.in_range(NOW - timedelta(days=3), NOW, branch_id="b2"),
            await recorder.search("DETAILED"),
            await recorder.search("   "),
            await recorder.recent(1),
            old,
        )

    updated, branch_commits, readings, last_day, b2_range, found, blank, recent, old = asyncio.run(scenario())

    assert updated.type is CommitType.REFLECTION
    assert [commit.message for commit in branch_commits] == ["Wrote detailed notes", "Read a paper"]
    assert [commit.id for commit in readings] == [old.id]
    assert [commit.id for commit in last_day] == [updated.id]
    assert b2_range == []
    assert [commit.id for commit in found] == [updated.id]
    assert blank == []
    assert [commit.id for commit in recent] == [updated.id]


def _seed(repos: InMemoryRepositories, days_ago: list[int], branch_id: str = "b1") -> None:
    async def scenario() -> None:
        for index, offset in enumerate(days_ago):
            await repos.commits.create(
                Commit(
                    message=f"Entry {index}",
                    type=CommitType.HABIT,
                    branch_id=branch_id,
                    timestamp=NOW - timedelta(days=offset, hours=index),
                )
            )

    asyncio.run(scenario())


def test_streak_counts_consecutive_days() -> None:
    repos = InMemoryRepositories()
    _seed(repos, [0, 0, 1, 2, 4])
    recorder = CommitRecorder(repos.commits, clock=Clock(NOW))

    assert asyncio.run(recorder.current_streak("b1")) == 3
    assert asyncio.run(recorder.current_streak()) == 3
    assert asyncio.run(recorder.current_streak("other")) == 0


def test_streak_is_zero_without_commit_today() -> None:
    repos = InMemoryRepositories()
    _seed(repos, [1, 2, 3])
    recorder = CommitRecorder(repos.commits, clock=Clock(NOW))

    assert asyncio.run(recorder.current_streak("b1")) == 0
    assert asyncio.run(recorder.current_streak("b1", today=date(2025, 3, 13))) == 3


def test_statistics() -> None:
    repos = InMemoryRepositories()
    _seed(repos, [0, 7, 14, 40])
    recorder = CommitRecorder(repos.commits, clock=Clock(NOW))

    stats = asyncio.run(recorder.statistics("b1"))
    empty = asyncio.run(recorder.statistics("nothing"))

    assert stats.total == 4
    assert stats.by_type == {CommitType.HABIT: 4}
    assert stats.last_30_days == 3
    assert stats.daily_frequency == pytest.approx(0.1)
    assert stats.last_commit_at == NOW
    assert stats.first_commit_at == NOW - timedelta(days=40, hours=3)
    assert stats.most_active_weekday == commit_day(NOW).weekday()
    assert stats.most_active_weekday_name == "Friday"
    assert empty.total == 0
    assert empty.most_active_weekday_name is None
