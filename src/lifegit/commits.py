"""Append-only progress log per branch and the reads derived from it."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from .errors import InvalidInputError
from .models import Commit, CommitType, TaskItem, utcnow
from .storage.guard import persist
from .storage.protocols import CommitRepository

logger = logging.getLogger(__name__)

_WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def commit_day(timestamp: datetime) -> date:
    """Calendar day of a commit, in UTC for timezone-aware timestamps."""

    if timestamp.tzinfo is None:
        return timestamp.date()
    return timestamp.astimezone(timezone.utc).date()


@dataclass(slots=True)
class CommitStatistics:
    branch_id: str
    total: int
    by_type: dict[CommitType, int] = field(default_factory=dict)
    last_30_days: int = 0
    most_active_weekday: int | None = None
    first_commit_at: datetime | None = None
    last_commit_at: datetime | None = None

    @property
    def daily_frequency(self) -> float:
        """Average commits per day over the last 30 days."""

        return self.last_30_days / 30

    @property
    def most_active_weekday_name(self) -> str | None:
        if self.most_active_weekday is None:
            return None
        return _WEEKDAY_NAMES[self.most_active_weekday]


class CommitRecorder:
    """Create commits and answer the questions other components ask about them."""

    def __init__(self, commits: CommitRepository, *, clock: Callable[[], datetime] | None = None) -> None:
        self._commits = commits
        self._clock = clock or utcnow

    async def create(
        self,
        message: str,
        commit_type: CommitType,
        branch_id: str,
        related_task_id: str | None = None,
    ) -> Commit:
        text = message.strip()
        if not text:
            raise InvalidInputError("Commit message must not be empty")

        commit = Commit(
            message=text,
            type=commit_type,
            branch_id=branch_id,
            related_task_id=related_task_id,
            timestamp=self._clock(),
        )
        await persist("create", "commit", self._commits.create(commit))
        logger.debug(
            "Commit recorded",
            extra={"branch_id": branch_id, "commit_type": commit_type.value, "commit_id": commit.id},
        )
        return commit

    async def create_quick(
        self, commit_type: CommitType, branch_id: str, message: str | None = None
    ) -> Commit:
        text = message if message and message.strip() else commit_type.default_message
        return await self.create(text, commit_type, branch_id)

    async def create_task_completion(self, task: TaskItem, branch_id: str) -> Commit:
        return await self.create(
            f"Completed task: {task.title}",
            CommitType.TASK_COMPLETE,
            branch_id,
            related_task_id=task.id,
        )

    async def create_milestone(self, text: str, branch_id: str) -> Commit:
        return await self.create(text, CommitType.MILESTONE, branch_id)

    async def update(
        self,
        commit: Commit,
        *,
        message: str | None = None,
        commit_type: CommitType | None = None,
    ) -> Commit:
        updated = commit.model_copy()
        if message is not None:
            text = message.strip()
            if not text:
                raise InvalidInputError("Commit message must not be empty")
            updated.message = text
        if commit_type is not None:
            updated.type = commit_type
        await persist("update", "commit", self._commits.update(updated))
        return updated

    async def delete(self, commit: Commit) -> None:
        await persist("delete", "commit", self._commits.delete(commit.id))

    async def for_branch(self, branch_id: str) -> list[Commit]:
        return await persist("query", "commits", self._commits.find_by_branch_id(branch_id))

    async def for_branch_by_type(self, branch_id: str, commit_type: CommitType) -> list[Commit]:
        return await persist(
            "query", "commits", self._commits.find_by_branch_id_and_type(branch_id, commit_type)
        )

    async def in_range(
        self, start: datetime, end: datetime, *, branch_id: str | None = None
    ) -> list[Commit]:
        if branch_id is None:
            return await persist("query", "commits", self._commits.find_by_date_range(start, end))
        return await persist(
            "query", "commits", self._commits.find_by_branch_id_and_date_range(branch_id, start, end)
        )

    async def search(self, text: str) -> list[Commit]:
        if not text.strip():
            return []
        return await persist("query", "commits", self._commits.search_by_content(text.strip()))

    async def recent(self, limit: int = 20) -> list[Commit]:
        return await persist("query", "commits", self._commits.get_recent_commits(limit))

    async def count(self, branch_id: str) -> int:
        return await persist("query", "commits", self._commits.get_commit_count(branch_id))

    async def current_streak(self, branch_id: str | None = None, *, today: date | None = None) -> int:
        """Count consecutive days with at least one commit, walking back from today.

        A day without commits ends the streak, so no commit today means zero.
        """

        if branch_id is None:
            commits = await persist("query", "commits", self._commits.find_all())
        else:
            commits = await self.for_branch(branch_id)

        days = {commit_day(commit.timestamp) for commit in commits}
        check = today or commit_day(self._clock())
        streak = 0
        while check in days:
            streak += 1
            check -= timedelta(days=1)
        return streak

    async def statistics(self, branch_id: str, *, now: datetime | None = None) -> CommitStatistics:
        commits = await self.for_branch(branch_id)
        stats = CommitStatistics(branch_id=branch_id, total=len(commits))
        if not commits:
            return stats

        reference = now or self._clock()
        window_start = reference - timedelta(days=30)
        stats.by_type = dict(Counter(commit.type for commit in commits))
        stats.last_30_days = sum(1 for commit in commits if window_start <= commit.timestamp <= reference)
        weekdays = Counter(commit_day(commit.timestamp).weekday() for commit in commits)
        stats.most_active_weekday = min(weekdays, key=lambda day: (-weekdays[day], day))
        stats.first_commit_at = min(commit.timestamp for commit in commits)
        stats.last_commit_at = max(commit.timestamp for commit in commits)
        return stats


__all__ = ["CommitRecorder", "CommitStatistics", "commit_day"]
