"""Manual editing of task plans."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence

from ..commits import CommitRecorder
from ..errors import BranchNotFoundError, InvalidInputError, NoTaskPlanError, TaskItemNotFoundError
from ..locking import BranchLocks
from ..models import Branch, TaskItem, TaskPlan, TimeScope, utcnow
from ..storage.guard import persist
from ..storage.protocols import BranchRepository, TaskPlanRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskPlanProgress:
    total_tasks: int
    completed_tasks: int
    total_minutes: int
    completed_minutes: int

    @property
    def remaining_tasks(self) -> int:
        return self.total_tasks - self.completed_tasks

    @property
    def remaining_minutes(self) -> int:
        return self.total_minutes - self.completed_minutes

    @property
    def progress(self) -> float:
        if self.total_tasks == 0:
            return 0.0
        return self.completed_tasks / self.total_tasks


def calculate_progress(plan: TaskPlan) -> TaskPlanProgress:
    completed = [task for task in plan.tasks if task.is_completed]
    return TaskPlanProgress(
        total_tasks=len(plan.tasks),
        completed_tasks=len(completed),
        total_minutes=plan.total_estimated_duration,
        completed_minutes=sum(task.estimated_duration for task in completed),
    )


class TaskPlanEditor:
    """Add, change, reorder and complete the tasks of a branch's plan.

    Every mutation runs under the branch's lock, leaves order indices dense
    from zero and recomputes the branch's progress.
    """

    def __init__(
        self,
        branches: BranchRepository,
        task_plans: TaskPlanRepository,
        recorder: CommitRecorder,
        *,
        locks: BranchLocks | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._branches = branches
        self._task_plans = task_plans
        self._recorder = recorder
        self._locks = locks or BranchLocks()
        self._clock = clock or utcnow

    async def _load_plan(self, branch_id: str) -> TaskPlan:
        plan = await persist("query", "task plan", self._task_plans.find_by_branch_id(branch_id))
        if plan is None:
            raise NoTaskPlanError(f"Branch '{branch_id}' has no task plan")
        return plan

    @staticmethod
    def _require_task(plan: TaskPlan, task_id: str) -> TaskItem:
        task = plan.find_task(task_id)
        if task is None:
            raise TaskItemNotFoundError(f"Task '{task_id}' is not part of plan '{plan.id}'")
        return task

    async def _save(self, plan: TaskPlan) -> Branch:
        now = self._clock()
        plan.renumber()
        plan.last_modified_at = now
        await persist("update", "task plan", self._task_plans.update(plan))

        branch = await persist("query", "branch", self._branches.find_by_id(plan.branch_id))
        if branch is None:
            raise BranchNotFoundError(f"Branch '{plan.branch_id}' not found")
        branch.recompute_progress(plan)
        await persist("update", "branch", self._branches.update(branch))
        return branch

    async def add_task_item(
        self,
        branch_id: str,
        title: str,
        description: str = "",
        estimated_duration: int = 30,
        time_scope: TimeScope = TimeScope.DAILY,
        *,
        position: int | None = None,
    ) -> TaskItem:
        """Insert a task at ``position`` (default: the end of the plan)."""

        if not title.strip():
            raise InvalidInputError("Task title must not be empty")
        if estimated_duration <= 0:
            raise InvalidInputError("Estimated duration must be positive")

        async with self._locks.hold(branch_id):
            plan = await self._load_plan(branch_id)
            ordered = plan.ordered_tasks()
            task = TaskItem(
                title=title,
                description=description.strip(),
                estimated_duration=estimated_duration,
                time_scope=time_scope,
                created_at=self._clock(),
            )
            index = len(ordered) if position is None else max(0, min(position, len(ordered)))
            ordered.insert(index, task)
            for order, item in enumerate(ordered):
                item.order_index = order
            plan.tasks = ordered
            await self._save(plan)
            return task

    async def update_task_item(
        self,
        branch_id: str,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        estimated_duration: int | None = None,
        time_scope: TimeScope | None = None,
        execution_tips: str | None = None,
    ) -> TaskItem:
        if title is not None and not title.strip():
            raise InvalidInputError("Task title must not be empty")
        if estimated_duration is not None and estimated_duration <= 0:
            raise InvalidInputError("Estimated duration must be positive")

        async with self._locks.hold(branch_id):
            plan = await self._load_plan(branch_id)
            task = self._require_task(plan, task_id)
            if title is not None:
                task.title = title
            if description is not None:
                task.description = description.strip()
            if estimated_duration is not None:
                task.estimated_duration = estimated_duration
            if time_scope is not None:
                task.time_scope = time_scope
            if execution_tips is not None:
                task.execution_tips = execution_tips.strip() or None
            task.last_modified_at = self._clock()
            await self._save(plan)
            return task

    async def remove_task_item(self, branch_id: str, task_id: str) -> None:
        async with self._locks.hold(branch_id):
            plan = await self._load_plan(branch_id)
            task = self._require_task(plan, task_id)
            plan.tasks = [item for item in plan.tasks if item.id != task.id]
            await self._save(plan)

    async def reorder_task_items(self, branch_id: str, task_ids: Sequence[str]) -> TaskPlan:
        """Apply a new order given as the complete list of task ids."""

        async with self._locks.hold(branch_id):
            plan = await self._load_plan(branch_id)
            current = {task.id: task for task in plan.tasks}
            if len(task_ids) != len(current) or set(task_ids) != set(current):
                raise InvalidInputError("Reorder must list every task of the plan exactly once")
            for index, task_id in enumerate(task_ids):
                current[task_id].order_index = index
            plan.tasks = [current[task_id] for task_id in task_ids]
            await self._save(plan)
            return plan

    async def update_total_duration(self, branch_id: str, total_duration: str) -> TaskPlan:
        text = total_duration.strip()
        if not text:
            raise InvalidInputError("Total duration must not be empty")

        async with self._locks.hold(branch_id):
            plan = await self._load_plan(branch_id)
            plan.total_duration = text
            await self._save(plan)
            return plan

    async def toggle_task_completion(self, branch_id: str, task_id: str) -> TaskItem:
        """Flip a task's completion state.

        Completing records a task_complete commit linked to the task; undoing a
        completion keeps the commit history as it is.
        """

        async with self._locks.hold(branch_id):
            plan = await self._load_plan(branch_id)
            task = self._require_task(plan, task_id)
            now = self._clock()
            if task.is_completed:
                task.mark_incomplete(now)
            else:
                task.mark_completed(now)
            branch = await self._save(plan)
            if task.is_completed:
                await self._recorder.create_task_completion(task, branch_id)
            logger.info(
                "Task completion toggled",
                extra={
                    "branch_id": branch_id,
                    "task_id": task_id,
                    "completed": task.is_completed,
                    "progress": branch.progress,
                },
            )
            return task

    async def calculate_progress(self, branch_id: str) -> TaskPlanProgress:
        return calculate_progress(await self._load_plan(branch_id))


__all__ = ["TaskPlanEditor", "TaskPlanProgress", "calculate_progress"]
