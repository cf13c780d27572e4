"""Task plan generation and editing."""

from .editor import TaskPlanEditor, TaskPlanProgress, calculate_progress
from .pipeline import MANUAL_PLAN_DURATION, TaskDecompositionPipeline, manual_plan
from .prompts import build_system_prompt, build_task_plan_prompt
from .schema import GeneratedTask, GeneratedTaskPlan

__all__ = [
    "GeneratedTask",
    "GeneratedTaskPlan",
    "MANUAL_PLAN_DURATION",
    "TaskDecompositionPipeline",
    "TaskPlanEditor",
    "TaskPlanProgress",
    "build_system_prompt",
    "build_task_plan_prompt",
    "calculate_progress",
    "manual_plan",
]
