"""Repository ports consumed by the LifeGit core.

Every method is asynchronous and may raise any exception on storage failure;
the engine wraps such failures into :class:`lifegit.errors.PersistenceError`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..models import Branch, BranchStatus, Commit, CommitType, TaskPlan, UserProfile, VersionRecord


class BranchRepository(Protocol):
    async def create(self, branch: Branch) -> None:
        ...

    async def update(self, branch: Branch) -> None:
        ...

    async def delete(self, branch_id: str) -> None:
        """Delete a branch together with its commits and task plan."""

    async def find_by_id(self, branch_id: str) -> Branch | None:
        ...

    async def find_all(self) -> list[Branch]:
        ...

    async def find_by_status(self, status: BranchStatus) -> list[Branch]:
        ...

    async def find_master_branch(self) -> Branch | None:
        ...

    async def get_active_branches(self) -> list[Branch]:
        ...

    async def get_completed_branches(self) -> list[Branch]:
        ...


class CommitRepository(Protocol):
    async def create(self, commit: Commit) -> None:
        ...

    async def update(self, commit: Commit) -> None:
        ...

    async def delete(self, commit_id: str) -> None:
        ...

    async def find_by_id(self, commit_id: str) -> Commit | None:
        ...

    async def find_all(self) -> list[Commit]:
        """Return all commits, newest first."""

    async def find_by_branch_id(self, branch_id: str) -> list[Commit]:
        ...

    async def find_by_type(self, commit_type: CommitType) -> list[Commit]:
        ...

    async def find_by_branch_id_and_type(self, branch_id: str, commit_type: CommitType) -> list[Commit]:
        ...

    async def find_by_date_range(self, start: datetime, end: datetime) -> list[Commit]:
        ...

    async def find_by_branch_id_and_date_range(
        self, branch_id: str, start: datetime, end: datetime
    ) -> list[Commit]:
        ...

    async def get_commit_count(self, branch_id: str) -> int:
        ...

    async def get_recent_commits(self, limit: int) -> list[Commit]:
        ...

    async def search_by_content(self, text: str) -> list[Commit]:
        ...


class TaskPlanRepository(Protocol):
    async def create(self, plan: TaskPlan) -> None:
        ...

    async def update(self, plan: TaskPlan) -> None:
        ...

    async def delete(self, plan_id: str) -> None:
        ...

    async def find_by_id(self, plan_id: str) -> TaskPlan | None:
        ...

    async def find_by_branch_id(self, branch_id: str) -> TaskPlan | None:
        ...

    async def find_all(self) -> list[TaskPlan]:
        ...

    async def find_ai_generated(self) -> list[TaskPlan]:
        ...

    async def find_manually_created(self) -> list[TaskPlan]:
        ...


class VersionRecordRepository(Protocol):
    async def create(self, record: VersionRecord) -> None:
        ...

    async def find_all(self) -> list[VersionRecord]:
        ...

    async def find_by_version(self, version: str) -> VersionRecord | None:
        ...


class UserRepository(Protocol):
    async def get(self) -> UserProfile | None:
        ...

    async def save(self, user: UserProfile) -> None:
        ...


class Repositories(Protocol):
    """Bundle of the repositories one user's data lives in."""

    branches: BranchRepository
    commits: CommitRepository
    task_plans: TaskPlanRepository
    versions: VersionRecordRepository
    users: UserRepository


__all__ = [
    "BranchRepository",
    "CommitRepository",
    "Repositories",
    "TaskPlanRepository",
    "UserRepository",
    "VersionRecordRepository",
]
