"""Goal-branch state machine: create, complete, merge, abandon, regenerate."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .commits import CommitRecorder
from .errors import (
    BranchNotFoundError,
    CreationFailedError,
    InvalidBranchStateError,
    InvalidInputError,
    InvalidOperationError,
    LifeGitError,
    MasterBranchNotFoundError,
    NoTaskPlanError,
    PersistenceError,
)
from .locking import BranchLocks
from .models import Branch, BranchStatus, Commit, CommitType, TaskPlan, utcnow
from .planning.pipeline import TaskDecompositionPipeline, manual_plan
from .storage.guard import persist
from .storage.protocols import Repositories
from .versioning import VersionManager, VersionUpgradeProposal

logger = logging.getLogger(__name__)

MASTER_BRANCH_NAME = "master"


@dataclass(slots=True)
class BranchStatistics:
    branch_id: str
    commit_count: int
    total_tasks: int
    completed_tasks: int
    progress: float
    estimated_minutes: int


@dataclass(slots=True)
class MergeOutcome:
    merge_commit: Commit
    proposal: VersionUpgradeProposal | None


class BranchLifecycleEngine:
    """Guarded transitions over goal branches.

    Mutations of one branch are serialized through :class:`BranchLocks`;
    reads and mutations of other branches are not blocked. ``is_creating``,
    ``is_generating`` and ``is_merging`` are observation flags for callers,
    and ``error`` holds the last :class:`LifeGitError` raised by an operation.
    """

    def __init__(
        self,
        repositories: Repositories,
        pipeline: TaskDecompositionPipeline,
        *,
        recorder: CommitRecorder | None = None,
        versions: VersionManager | None = None,
        locks: BranchLocks | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repos = repositories
        self._pipeline = pipeline
        self._clock = clock or utcnow
        self._recorder = recorder or CommitRecorder(repositories.commits, clock=self._clock)
        self._versions = versions or VersionManager(repositories, clock=self._clock)
        self._locks = locks or BranchLocks()
        self._creating = 0
        self._merging = 0
        self.error: LifeGitError | None = None

    @property
    def is_creating(self) -> bool:
        return self._creating > 0

    @property
    def is_merging(self) -> bool:
        return self._merging > 0

    @property
    def is_generating(self) -> bool:
        return self._pipeline.is_generating

    @property
    def locks(self) -> BranchLocks:
        return self._locks

    @property
    def recorder(self) -> CommitRecorder:
        return self._recorder

    @property
    def versions(self) -> VersionManager:
        return self._versions

    def clear_error(self) -> None:
        self.error = None

    def _fail(self, exc: LifeGitError) -> LifeGitError:
        self.error = exc
        logger.warning("Branch operation failed", extra={"error": str(exc), "error_type": type(exc).__name__})
        return exc

    async def get_master_branch(self) -> Branch:
        try:
            return await self._find_master_branch()
        except LifeGitError as exc:
            raise self._fail(exc)

    async def _find_master_branch(self) -> Branch:
        master = await persist("query", "master branch", self._repos.branches.find_master_branch())
        if master is None:
            raise MasterBranchNotFoundError("Master branch not found")
        return master

    async def ensure_master_branch(self) -> Branch:
        """Return the master branch, creating it when it is missing."""

        async with self._locks.hold(MASTER_BRANCH_NAME):
            master = await persist("query", "master branch", self._repos.branches.find_master_branch())
            if master is not None:
                return master
            master = Branch(
                name=MASTER_BRANCH_NAME,
                description="Life timeline",
                status=BranchStatus.ACTIVE,
                is_master=True,
                created_at=self._clock(),
            )
            await persist("create", "master branch", self._repos.branches.create(master))
        logger.info("Master branch created", extra={"branch_id": master.id})
        return master

    async def get_branch(self, branch_id: str) -> Branch:
        try:
            return await self._find_branch(branch_id)
        except LifeGitError as exc:
            raise self._fail(exc)

    async def _find_branch(self, branch_id: str) -> Branch:
        branch = await persist("query", "branch", self._repos.branches.find_by_id(branch_id))
        if branch is None:
            raise BranchNotFoundError(f"Branch '{branch_id}' not found")
        return branch

    async def get_task_plan(self, branch: Branch) -> TaskPlan | None:
        return await persist("query", "task plan", self._repos.task_plans.find_by_branch_id(branch.id))

    async def list_branches(self, status: BranchStatus | None = None) -> list[Branch]:
        if status is None:
            return await persist("query", "branches", self._repos.branches.find_all())
        return await persist("query", "branches", self._repos.branches.find_by_status(status))

    async def create_branch(
        self,
        name: str,
        description: str,
        timeframe: str | None = None,
        *,
        expected_completion_date: datetime | None = None,
    ) -> tuple[Branch, TaskPlan]:
        """Create an active branch and attach a generated task plan.

        The branch is persisted before the plan. If storing the plan fails the
        branch is left in place and :class:`CreationFailedError` names it.
        """

        return await self._create(
            name, description, timeframe, expected_completion_date=expected_completion_date, use_ai=True
        )

    async def create_branch_with_manual_plan(self, name: str, description: str) -> tuple[Branch, TaskPlan]:
        return await self._create(name, description, None, expected_completion_date=None, use_ai=False)

    async def _create(
        self,
        name: str,
        description: str,
        timeframe: str | None,
        *,
        expected_completion_date: datetime | None,
        use_ai: bool,
    ) -> tuple[Branch, TaskPlan]:
        title = name.strip()
        if not title:
            raise self._fail(InvalidInputError("Branch name must not be empty"))

        self._creating += 1
        try:
            master = await self.ensure_master_branch()
            branch = Branch(
                name=title,
                description=description.strip(),
                status=BranchStatus.ACTIVE,
                created_at=self._clock(),
                expected_completion_date=expected_completion_date,
                parent_branch_id=master.id,
            )
            async with self._locks.hold(branch.id):
                await persist("create", "branch", self._repos.branches.create(branch))

                if use_ai:
                    plan = await self._pipeline.generate(title, branch.description, timeframe, branch_id=branch.id)
                else:
                    plan = manual_plan(title, branch_id=branch.id)

                try:
                    await persist("create", "task plan", self._repos.task_plans.create(plan))
                except PersistenceError as exc:
                    raise CreationFailedError(
                        f"Branch '{title}' was created but its task plan could not be stored: {exc.cause}",
                        branch_id=branch.id,
                    ) from exc

            logger.info(
                "Branch created",
                extra={"branch_id": branch.id, "tasks": len(plan.tasks), "ai_plan": plan.is_ai_generated},
            )
            return branch, plan
        except LifeGitError as exc:
            raise self._fail(exc)
        finally:
            self._creating -= 1

    async def complete_branch(self, branch: Branch) -> Branch:
        """Mark an active branch completed and record a milestone on the branch itself."""

        if branch.is_master:
            raise self._fail(InvalidOperationError("The master branch cannot be completed"))

        try:
            async with self._locks.hold(branch.id):
                current = await self._find_branch(branch.id)
                if current.status != BranchStatus.ACTIVE:
                    raise InvalidBranchStateError(
                        f"Branch '{current.name}' is {current.status.value}; only active branches can be completed"
                    )
                current.status = BranchStatus.COMPLETED
                current.completed_at = self._clock()
                await persist("update", "branch", self._repos.branches.update(current))
                await self._recorder.create_milestone(f"Completed goal: {current.name}", current.id)
        except LifeGitError as exc:
            raise self._fail(exc)

        logger.info("Branch completed", extra={"branch_id": current.id})
        return current

    async def merge_branch(self, branch: Branch) -> MergeOutcome:
        """Record a completed branch on master and ask the evaluator for an upgrade."""

        if branch.is_master:
            raise self._fail(InvalidOperationError("The master branch cannot be merged"))

        self._merging += 1
        try:
            current = await self._find_branch(branch.id)
            if current.status != BranchStatus.COMPLETED:
                raise InvalidBranchStateError(
                    f"Branch '{current.name}' is {current.status.value}; only completed branches can be merged"
                )
            master = await self._find_master_branch()
            async with self._locks.hold(master.id):
                merge_commit = await self._recorder.create(
                    f"Merged goal: {current.name}", CommitType.MILESTONE, master.id
                )
            proposal = await self._versions.evaluate_merge(current)
        except LifeGitError as exc:
            raise self._fail(exc)
        finally:
            self._merging -= 1

        logger.info(
            "Branch merged",
            extra={"branch_id": current.id, "upgrade_proposed": proposal is not None},
        )
        return MergeOutcome(merge_commit=merge_commit, proposal=proposal)

    async def abandon_branch(self, branch: Branch, reflection: str | None = None) -> Branch:
        if branch.is_master:
            raise self._fail(InvalidOperationError("The master branch cannot be abandoned"))

        try:
            async with self._locks.hold(branch.id):
                current = await self._find_branch(branch.id)
                if current.status != BranchStatus.ACTIVE:
                    raise InvalidBranchStateError(
                        f"Branch '{current.name}' is {current.status.value}; only active branches can be abandoned"
                    )
                current.status = BranchStatus.ABANDONED
                await persist("update", "branch", self._repos.branches.update(current))
                if reflection and reflection.strip():
                    await self._recorder.create(reflection, CommitType.REFLECTION, current.id)
        except LifeGitError as exc:
            raise self._fail(exc)

        logger.info("Branch abandoned", extra={"branch_id": current.id})
        return current

    async def regenerate_task_plan(self, branch: Branch, timeframe: str | None = None) -> TaskPlan:
        """Replace the branch's plan with a freshly generated one, dropping task history."""

        if branch.is_master:
            raise self._fail(InvalidOperationError("The master branch has no task plan"))

        try:
            async with self._locks.hold(branch.id):
                current = await self._find_branch(branch.id)
                existing = await self.get_task_plan(current)
                if existing is None:
                    raise NoTaskPlanError(f"Branch '{current.name}' has no task plan to regenerate")

                plan = await self._pipeline.generate(
                    current.name, current.description, timeframe, branch_id=current.id
                )
                await persist("delete", "task plan", self._repos.task_plans.delete(existing.id))
                await persist("create", "task plan", self._repos.task_plans.create(plan))
                current.recompute_progress(plan)
                await persist("update", "branch", self._repos.branches.update(current))
        except LifeGitError as exc:
            raise self._fail(exc)

        logger.info(
            "Task plan regenerated",
            extra={"branch_id": current.id, "tasks": len(plan.tasks), "ai_plan": plan.is_ai_generated},
        )
        return plan

    async def delete_branch(self, branch: Branch) -> None:
        """Delete a branch with its commits and plan."""

        if branch.is_master:
            raise self._fail(InvalidOperationError("The master branch cannot be deleted"))
        async with self._locks.hold(branch.id):
            await persist("delete", "branch", self._repos.branches.delete(branch.id))
        self._locks.discard(branch.id)

    async def get_branch_statistics(self, branch: Branch) -> BranchStatistics:
        commit_count = await self._recorder.count(branch.id)
        plan = await self.get_task_plan(branch)
        tasks = plan.tasks if plan else []
        completed = sum(1 for task in tasks if task.is_completed)
        return BranchStatistics(
            branch_id=branch.id,
            commit_count=commit_count,
            total_tasks=len(tasks),
            completed_tasks=completed,
            progress=completed / len(tasks) if tasks else 0.0,
            estimated_minutes=sum(task.estimated_duration for task in tasks),
        )


__all__ = ["BranchLifecycleEngine", "BranchStatistics", "MASTER_BRANCH_NAME", "MergeOutcome"]
