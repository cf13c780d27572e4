"""Schema for the structured plan returned by the completion service."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import TaskItem, TaskPlan, TimeScope


class GeneratedTask(BaseModel):
    """One task as described by the model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str
    description: str
    time_scope: TimeScope = Field(default=TimeScope.DAILY, validation_alias="timeScope")
    estimated_duration: int = Field(..., gt=0, validation_alias="estimatedDuration")
    order_index: int | None = Field(default=None, validation_alias="orderIndex")
    execution_tips: str | None = Field(default=None, validation_alias="executionTips")

    @field_validator("title", "description")
    @classmethod
    def _require_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Task title and description must not be empty")
        return normalized

    @field_validator("time_scope", mode="before")
    @classmethod
    def _parse_scope(cls, value: Any) -> TimeScope:
        return TimeScope.parse(value)

    @field_validator("execution_tips")
    @classmethod
    def _blank_tips_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class GeneratedTaskPlan(BaseModel):
    """A whole plan as described by the model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    total_duration: str = Field(..., validation_alias="totalDuration")
    tasks: list[GeneratedTask] = Field(..., min_length=1)

    @field_validator("total_duration")
    @classmethod
    def _require_duration(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("totalDuration must not be empty")
        return normalized

    def ordered_tasks(self) -> list[GeneratedTask]:
        """Tasks sorted by their given index, falling back to list position.

        Ties and missing indices keep the order in which the model listed them.
        """

        indexed = list(enumerate(self.tasks))
        indexed.sort(
            key=lambda pair: (pair[1].order_index if pair[1].order_index is not None else pair[0], pair[0])
        )
        return [task for _, task in indexed]

    def to_task_plan(self, branch_id: str) -> TaskPlan:
        items = [
            TaskItem(
                title=task.title,
                description=task.description,
                estimated_duration=task.estimated_duration,
                time_scope=task.time_scope,
                order_index=index,
                is_ai_generated=True,
                execution_tips=task.execution_tips,
            )
            for index, task in enumerate(self.ordered_tasks())
        ]
        return TaskPlan(
            branch_id=branch_id,
            total_duration=self.total_duration,
            is_ai_generated=True,
            tasks=items,
        )


__all__ = ["GeneratedTask", "GeneratedTaskPlan"]
