from __future__ import annotations

import asyncio
import json

import pytest

from lifegit.completion import CompletionFailureKind, CompletionServiceError, FakeCompletionService
from lifegit.config import LifeGitSettings
from lifegit.errors import InvalidInputError
from lifegit.models import TimeScope
from lifegit.planning import MANUAL_PLAN_DURATION, TaskDecompositionPipeline, manual_plan


def plan_json(*titles: str, order: list[int] | None = None, scope: str = "daily") -> str:
    tasks = []
    for position, title in enumerate(titles):
        task = {
            "title": title,
            "description": f"Work on {title}",
            "timeScope": scope,
            "estimatedDuration": 30,
            "executionTips": "Keep it short",
        }
        if order is not None:
            task["orderIndex"] = order[position]
        tasks.append(task)
    return json.dumps({"totalDuration": "1 month", "tasks": tasks})


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _pipeline(service, **kwargs) -> tuple[TaskDecompositionPipeline, RecordingSleep]:
    sleep = RecordingSleep()
    return TaskDecompositionPipeline(service, sleep=sleep, **kwargs), sleep


def _retryable() -> CompletionServiceError:
    return CompletionServiceError(CompletionFailureKind.SERVER_ERROR, "upstream exploded")


def test_generates_ai_plan_on_first_attempt() -> None:
    service = FakeCompletionService([plan_json("Vocabulary", "Grammar", "Listening", "Speaking", "Review")])
    pipeline, sleep = _pipeline(service)

    plan = asyncio.run(pipeline.generate("学英语", "每天学习30分钟", "3 months", branch_id="b1"))

    assert plan.is_ai_generated
    assert plan.branch_id == "b1"
    assert plan.total_duration == "1 month"
    assert [task.order_index for task in plan.tasks] == [0, 1, 2, 3, 4]
    assert all(task.is_ai_generated and not task.is_completed for task in plan.tasks)
    assert plan.tasks[0].execution_tips == "Keep it short"
    assert pipeline.attempts == 0
    assert pipeline.last_failure is None
    assert not pipeline.is_generating
    assert sleep.delays == []
    prompt = service.prompts[0]
    assert "Goal title: 学英语" in prompt
    assert "每天学习30分钟" in prompt
    assert "3 months" in prompt


def test_fenced_output_and_unknown_scope() -> None:
    fenced = "```json\n" + plan_json("Stretch", scope="fortnightly") + "\n```"
    pipeline, _ = _pipeline(FakeCompletionService([fenced]))

    plan = asyncio.run(pipeline.generate("Get flexible", "", branch_id="b1"))

    assert plan.is_ai_generated
    assert plan.tasks[0].time_scope is TimeScope.DAILY


def test_order_indices_are_renumbered_densely() -> None:
    response = plan_json("A", "B", "C", "D", order=[3, 1, 1, 7])
    pipeline, _ = _pipeline(FakeCompletionService([response]))

    plan = asyncio.run(pipeline.generate("Sort things", "", branch_id="b1"))

    assert [task.title for task in plan.tasks] == ["B", "C", "A", "D"]
    assert [task.order_index for task in plan.tasks] == [0, 1, 2, 3]


def test_non_retryable_failure_falls_back_immediately() -> None:
    service = FakeCompletionService(
        [CompletionServiceError(CompletionFailureKind.AUTHENTICATION_FAILED, "bad key")],
        default=plan_json("Never used"),
    )
    pipeline, sleep = _pipeline(service)

    plan = asyncio.run(pipeline.generate("Run a marathon", "", branch_id="b1"))

    assert service.calls == 1
    assert sleep.delays == []
    assert not plan.is_ai_generated
    assert plan.total_duration == MANUAL_PLAN_DURATION
    assert [task.title for task in plan.tasks] == ["Start: Run a marathon"]
    assert pipeline.last_failure is not None
    assert pipeline.last_failure.kind is CompletionFailureKind.AUTHENTICATION_FAILED


def test_retryable_failures_back_off_then_fall_back() -> None:
    service = FakeCompletionService(default=_retryable())
    pipeline, sleep = _pipeline(service)

    plan = asyncio.run(pipeline.generate("Run a marathon", "", branch_id="b1"))

    assert service.calls == 3
    assert sleep.delays == [2.0, 4.0]
    assert pipeline.attempts == 3
    assert not plan.is_ai_generated
    assert not pipeline.is_generating


def test_success_after_fallback_resets_attempts() -> None:
    service = FakeCompletionService([_retryable(), _retryable(), _retryable(), _retryable(), plan_json("Go")])
    pipeline, sleep = _pipeline(service)

    async def scenario():
        first = await pipeline.generate("Goal one", "", branch_id="b1")
        assert pipeline.attempts == 3
        second = await pipeline.generate("Goal two", "", branch_id="b2")
        return first, second

    first, second = asyncio.run(scenario())

    assert not first.is_ai_generated
    assert second.is_ai_generated
    assert pipeline.attempts == 0
    assert sleep.delays == [2.0, 4.0, 2.0]


def test_invalid_payloads_are_retried() -> None:
    too_many = plan_json("A", "B", "C")
    service = FakeCompletionService(["not json at all", too_many, '{"totalDuration": "", "tasks": []}'])
    pipeline, sleep = _pipeline(service, max_tasks=2)

    plan = asyncio.run(pipeline.generate("Goal", "", branch_id="b1"))

    assert service.calls == 3
    assert len(sleep.delays) == 2
    assert not plan.is_ai_generated
    assert pipeline.last_failure.kind is CompletionFailureKind.INVALID_RESPONSE


def test_slow_service_times_out() -> None:
    class SlowService:
        async def complete(self, prompt: str) -> str:
            await asyncio.sleep(1)
            return plan_json("Late")

    pipeline, _ = _pipeline(SlowService(), max_attempts=1, timeout=0.01)

    plan = asyncio.run(pipeline.generate("Goal", "", branch_id="b1"))

    assert not plan.is_ai_generated
    assert pipeline.last_failure.kind is CompletionFailureKind.TIMEOUT


def test_empty_title_is_rejected_before_calling() -> None:
    service = FakeCompletionService(default=plan_json("A"))
    pipeline, _ = _pipeline(service)

    with pytest.raises(InvalidInputError):
        asyncio.run(pipeline.generate("   ", "whatever", branch_id="b1"))

    assert service.calls == 0


def test_backoff_delay_is_capped() -> None:
    pipeline, _ = _pipeline(FakeCompletionService())

    assert [pipeline.backoff_delay(attempt) for attempt in range(1, 6)] == [2.0, 4.0, 8.0, 16.0, 16.0]


def test_from_settings_reads_retry_policy() -> None:
    settings = LifeGitSettings(_env_file=None, plan_max_attempts=5, plan_retry_base_delay=1.0)

    pipeline = TaskDecompositionPipeline.from_settings(settings, FakeCompletionService())

    assert pipeline.max_attempts == 5
    assert pipeline.backoff_delay(1) == 1.0


def test_manual_plan_shape() -> None:
    plan = manual_plan("Learn guitar", branch_id="b9")

    assert plan.branch_id == "b9"
    assert not plan.is_ai_generated
    task = plan.tasks[0]
    assert (task.title, task.estimated_duration, task.time_scope, task.order_index) == (
        "Start: Learn guitar",
        60,
        TimeScope.DAILY,
        0,
    )


class SplitService:
    """Fail every request for one goal and hold the other until released."""

    def __init__(self, failing_title: str) -> None:
        self.failing_title = failing_title
        self.gate: asyncio.Event | None = None
        self.waiting = False

    async def complete(self, prompt: str) -> str:
        if f"Goal title: {self.failing_title}" in prompt:
            raise _retryable()
        self.waiting = True
        await self.gate.wait()
        return plan_json("Go")


def test_overlapping_requests_keep_their_own_attempts() -> None:
    service = SplitService("Goal one")
    pipeline, _ = _pipeline(service)

    async def scenario():
        service.gate = asyncio.Event()
        held = asyncio.create_task(pipeline.generate("Goal two", "", branch_id="b2"))
        while not service.waiting:
            await asyncio.sleep(0)
        fallback = await pipeline.generate("Goal one", "", branch_id="b1")
        observed = (pipeline.attempts, pipeline.is_generating, held.done())
        service.gate.set()
        return fallback, await held, observed

    fallback, generated, observed = asyncio.run(scenario())

    assert not fallback.is_ai_generated
    assert generated.is_ai_generated
    assert observed == (1, True, False)
    assert pipeline.attempts == 0
    assert not pipeline.is_generating
