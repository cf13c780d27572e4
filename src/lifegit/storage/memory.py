"""In-process repositories backed by dictionaries."""

from __future__ import annotations

from datetime import datetime

from ..models import Branch, BranchStatus, Commit, CommitType, TaskPlan, UserProfile, VersionRecord


class _Tables:
    """Shared row storage so deletes can cascade across repositories."""

    def __init__(self) -> None:
        self.branches: dict[str, Branch] = {}
        self.commits: dict[str, Commit] = {}
        self.task_plans: dict[str, TaskPlan] = {}
        self.versions: dict[str, VersionRecord] = {}
        self.user: UserProfile | None = None


def _newest_first(commits: list[Commit]) -> list[Commit]:
    return sorted(commits, key=lambda commit: commit.timestamp, reverse=True)


class InMemoryBranchRepository:
    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    async def create(self, branch: Branch) -> None:
        if branch.id in self._tables.branches:
            raise KeyError(f"Branch '{branch.id}' already exists")
        self._tables.branches[branch.id] = branch.model_copy(deep=True)

    async def update(self, branch: Branch) -> None:
        if branch.id not in self._tables.branches:
            raise KeyError(f"Branch '{branch.id}' does not exist")
        self._tables.branches[branch.id] = branch.model_copy(deep=True)

    async def delete(self, branch_id: str) -> None:
        self._tables.branches.pop(branch_id, None)
        for commit_id in [cid for cid, commit in self._tables.commits.items() if commit.branch_id == branch_id]:
            del self._tables.commits[commit_id]
        for plan_id in [pid for pid, plan in self._tables.task_plans.items() if plan.branch_id == branch_id]:
            del self._tables.task_plans[plan_id]

    async def find_by_id(self, branch_id: str) -> Branch | None:
        branch = self._tables.branches.get(branch_id)
        return branch.model_copy(deep=True) if branch else None

    async def find_all(self) -> list[Branch]:
        branches = sorted(self._tables.branches.values(), key=lambda branch: branch.created_at)
        return [branch.model_copy(deep=True) for branch in branches]

    async def find_by_status(self, status: BranchStatus) -> list[Branch]:
        return [branch for branch in await self.find_all() if branch.status == status and not branch.is_master]

    async def find_master_branch(self) -> Branch | None:
        return next((branch for branch in await self.find_all() if branch.is_master), None)

    async def get_active_branches(self) -> list[Branch]:
        return await self.find_by_status(BranchStatus.ACTIVE)

    async def get_completed_branches(self) -> list[Branch]:
        return await self.find_by_status(BranchStatus.COMPLETED)


class InMemoryCommitRepository:
    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    async def create(self, commit: Commit) -> None:
        if commit.id in self._tables.commits:
            raise KeyError(f"Commit '{commit.id}' already exists")
        self._tables.commits[commit.id] = commit.model_copy(deep=True)

    async def update(self, commit: Commit) -> None:
        if commit.id not in self._tables.commits:
            raise KeyError(f"Commit '{commit.id}' does not exist")
        self._tables.commits[commit.id] = commit.model_copy(deep=True)

    async def delete(self, commit_id: str) -> None:
        self._tables.commits.pop(commit_id, None)

    async def find_by_id(self, commit_id: str) -> Commit | None:
        commit = self._tables.commits.get(commit_id)
        return commit.model_copy(deep=True) if commit else None

    async def find_all(self) -> list[Commit]:
        return [commit.model_copy(deep=True) for commit in _newest_first(list(self._tables.commits.values()))]

    async def find_by_branch_id(self, branch_id: str) -> list[Commit]:
        return [commit for commit in await self.find_all() if commit.branch_id == branch_id]

    async def find_by_type(self, commit_type: CommitType) -> list[Commit]:
        return [commit for commit in await self.find_all() if commit.type == commit_type]

    async def find_by_branch_id_and_type(self, branch_id: str, commit_type: CommitType) -> list[Commit]:
        return [commit for commit in await self.find_by_branch_id(branch_id) if commit.type == commit_type]

    async def find_by_date_range(self, start: datetime, end: datetime) -> list[Commit]:
        return [commit for commit in await self.find_all() if start <= commit.timestamp <= end]

    async def find_by_branch_id_and_date_range(
        self, branch_id: str, start: datetime, end: datetime
    ) -> list[Commit]:
        return [commit for commit in await self.find_by_date_range(start, end) if commit.branch_id == branch_id]

    async def get_commit_count(self, branch_id: str) -> int:
        return sum(1 for commit in self._tables.commits.values() if commit.branch_id == branch_id)

    async def get_recent_commits(self, limit: int) -> list[Commit]:
        return (await self.find_all())[:limit]

    async def search_by_content(self, text: str) -> list[Commit]:
        needle = text.lower()
        return [commit for commit in await self.find_all() if needle in commit.message.lower()]


class InMemoryTaskPlanRepository:
    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    async def create(self, plan: TaskPlan) -> None:
        if plan.id in self._tables.task_plans:
            raise KeyError(f"Task plan '{plan.id}' already exists")
        self._tables.task_plans[plan.id] = plan.model_copy(deep=True)

    async def update(self, plan: TaskPlan) -> None:
        if plan.id not in self._tables.task_plans:
            raise KeyError(f"Task plan '{plan.id}' does not exist")
        self._tables.task_plans[plan.id] = plan.model_copy(deep=True)

    async def delete(self, plan_id: str) -> None:
        self._tables.task_plans.pop(plan_id, None)

    async def find_by_id(self, plan_id: str) -> TaskPlan | None:
        plan = self._tables.task_plans.get(plan_id)
        return plan.model_copy(deep=True) if plan else None

    async def find_by_branch_id(self, branch_id: str) -> TaskPlan | None:
        return next((plan for plan in await self.find_all() if plan.branch_id == branch_id), None)

    async def find_all(self) -> list[TaskPlan]:
        return [plan.model_copy(deep=True) for plan in self._tables.task_plans.values()]

    async def find_ai_generated(self) -> list[TaskPlan]:
        return [plan for plan in await self.find_all() if plan.is_ai_generated]

    async def find_manually_created(self) -> list[TaskPlan]:
        return [plan for plan in await self.find_all() if not plan.is_ai_generated]


class InMemoryVersionRecordRepository:
    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    async def create(self, record: VersionRecord) -> None:
        self._tables.versions[record.id] = record

    async def find_all(self) -> list[VersionRecord]:
        return sorted(self._tables.versions.values(), key=lambda record: record.upgraded_at)

    async def find_by_version(self, version: str) -> VersionRecord | None:
        return next((record for record in self._tables.versions.values() if record.version == version), None)


class InMemoryUserRepository:
    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    async def get(self) -> UserProfile | None:
        user = self._tables.user
        return user.model_copy(deep=True) if user else None

    async def save(self, user: UserProfile) -> None:
        self._tables.user = user.model_copy(deep=True)


class InMemoryRepositories:
    """All repositories for one user, sharing a single set of tables."""

    def __init__(self) -> None:
        tables = _Tables()
        self.branches = InMemoryBranchRepository(tables)
        self.commits = InMemoryCommitRepository(tables)
        self.task_plans = InMemoryTaskPlanRepository(tables)
        self.versions = InMemoryVersionRecordRepository(tables)
        self.users = InMemoryUserRepository(tables)


__all__ = [
    "InMemoryBranchRepository",
    "InMemoryCommitRepository",
    "InMemoryRepositories",
    "InMemoryTaskPlanRepository",
    "InMemoryUserRepository",
    "InMemoryVersionRecordRepository",
]
