"""Turn a free-text goal into a task plan through the completion service."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Awaitable, Callable

from ..completion.client import CompletionService
from ..completion.errors import CompletionFailureKind, CompletionServiceError, FailureInfo, classify_failure
from ..completion.utils import extract_json_object
from ..config import LifeGitSettings
from ..errors import InvalidInputError
from ..models import TaskItem, TaskPlan, TimeScope
from .prompts import build_task_plan_prompt
from .schema import GeneratedTaskPlan

logger = logging.getLogger(__name__)

MANUAL_PLAN_DURATION = "Manual plan"
MANUAL_TASK_MINUTES = 60


def manual_plan(goal_title: str, *, branch_id: str) -> TaskPlan:
    """Single placeholder task asking the user to write the plan themselves."""

    task = TaskItem(
        title=f"Start: {goal_title}",
        description=(
            "The AI planner is unavailable right now. Break this goal into concrete steps "
            "and add them to the plan yourself."
        ),
        estimated_duration=MANUAL_TASK_MINUTES,
        time_scope=TimeScope.DAILY,
        order_index=0,
        is_ai_generated=False,
    )
    return TaskPlan(
        branch_id=branch_id,
        total_duration=MANUAL_PLAN_DURATION,
        is_ai_generated=False,
        tasks=[task],
    )


class TaskDecompositionPipeline:
    """Generate task plans with bounded retries and a manual fallback.

    :meth:`generate` never raises for completion failures: once attempts run
    out, or the failure is not retryable, it returns :func:`manual_plan`.

    Requests for different branches may overlap. Each request keeps its own
    attempt count; ``attempts`` reports the highest count among requests in
    flight, or the outcome of the last finished request when idle (the final
    count after a fallback, zero after a success). ``is_generating`` stays
    true while any request is running.
    """

    def __init__(
        self,
        completion_service: CompletionService,
        *,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 16.0,
        timeout: float = 30.0,
        max_tasks: int = 50,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._service = completion_service
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._timeout = timeout
        self._max_tasks = max_tasks
        self._sleep = sleep or asyncio.sleep
        self._in_flight: dict[int, int] = {}
        self._next_request = itertools.count()
        self._last_attempts = 0
        self.last_failure: FailureInfo | None = None

    @classmethod
    def from_settings(
        cls,
        settings: LifeGitSettings,
        completion_service: CompletionService,
        *,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> "TaskDecompositionPipeline":
        return cls(
            completion_service,
            max_attempts=settings.plan_max_attempts,
            base_delay=settings.plan_retry_base_delay,
            max_delay=settings.plan_retry_max_delay,
            timeout=settings.completion_timeout,
            max_tasks=settings.plan_max_tasks,
            sleep=sleep,
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def is_generating(self) -> bool:
        return bool(self._in_flight)

    @property
    def attempts(self) -> int:
        if self._in_flight:
            return max(self._in_flight.values())
        return self._last_attempts

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after failed attempt number ``attempt`` (1-based)."""

        return min(self._base_delay * (2 ** (attempt - 1)), self._max_delay)

    async def generate(
        self,
        goal_title: str,
        goal_description: str,
        timeframe: str | None = None,
        *,
        branch_id: str,
    ) -> TaskPlan:
        title = goal_title.strip()
        if not title:
            raise InvalidInputError("Goal title must not be empty")

        prompt = build_task_plan_prompt(title, goal_description.strip(), timeframe)
        request = next(self._next_request)
        self._in_flight[request] = 0
        self.last_failure = None
        attempt = 0
        try:
            while attempt < self._max_attempts:
                attempt += 1
                self._in_flight[request] = attempt
                try:
                    plan = await self._attempt(prompt, branch_id)
                except Exception as exc:
                    failure = classify_failure(exc)
                    self.last_failure = failure
                    logger.warning(
                        "Task plan generation attempt failed",
                        extra={
                            "attempt": attempt,
                            "kind": failure.kind.value,
                            "retryable": failure.retryable,
                            "branch_id": branch_id,
                        },
                    )
                    if not failure.retryable or attempt >= self._max_attempts:
                        break
                    await self._sleep(self.backoff_delay(attempt))
                    continue

                logger.info(
                    "Task plan generated",
                    extra={"attempt": attempt, "tasks": len(plan.tasks), "branch_id": branch_id},
                )
                self._last_attempts = 0
                return plan

            logger.warning(
                "Falling back to manual task plan",
                extra={"attempts": attempt, "branch_id": branch_id},
            )
            self._last_attempts = attempt
            return manual_plan(title, branch_id=branch_id)
        finally:
            del self._in_flight[request]

    async def _attempt(self, prompt: str, branch_id: str) -> TaskPlan:
        text = await asyncio.wait_for(self._service.complete(prompt), timeout=self._timeout)
        generated = GeneratedTaskPlan.model_validate_json(extract_json_object(text))
        if len(generated.tasks) > self._max_tasks:
            raise CompletionServiceError(
                CompletionFailureKind.INVALID_RESPONSE,
                f"Plan has {len(generated.tasks)} tasks, more than the limit of {self._max_tasks}",
            )
        return generated.to_task_plan(branch_id)


__all__ = ["MANUAL_PLAN_DURATION", "TaskDecompositionPipeline", "manual_plan"]
