"""Prompt builders for task plan generation."""

from __future__ import annotations

from ..models import TimeScope

_SCOPES = "|".join(scope.value for scope in TimeScope)

RESPONSE_CONTRACT = f"""{{
  "totalDuration": "overall duration estimate, e.g. '3 months'",
  "tasks": [
    {{
      "title": "task title",
      "description": "what to do and how",
      "timeScope": "{_SCOPES}",
      "estimatedDuration": <minutes, positive integer>,
      "orderIndex": <0-based position>,
      "executionTips": "practical advice"
    }}
  ]
}}"""


def build_system_prompt() -> str:
    return (
        "You are a goal-management and task-planning assistant. You break large personal goals "
        "into concrete, actionable task plans.\n\n"
        "Follow these principles:\n"
        "1. Tasks are specific, measurable and actionable.\n"
        "2. Time estimates are realistic, neither optimistic nor pessimistic.\n"
        "3. Difficulty ramps up from simple to complex.\n"
        "4. Each task comes with practical execution tips.\n"
        "5. The plan as a whole is complete and feasible.\n\n"
        "Always answer with valid JSON shaped like this:\n"
        f"{RESPONSE_CONTRACT}"
    )


def build_task_plan_prompt(goal_title: str, goal_description: str, timeframe: str | None = None) -> str:
    """Return the user prompt asking for a plan for one goal."""

    lines = [
        "Create a detailed task plan for the following goal.",
        "",
        f"Goal title: {goal_title}",
        f"Goal description: {goal_description}",
    ]
    if timeframe and timeframe.strip():
        lines.append(f"Expected timeframe: {timeframe.strip()}")
    lines.extend(
        [
            "",
            "Requirements:",
            "1. Break the goal into concrete, executable tasks.",
            f"2. Give every task a time scope ({', '.join(scope.value for scope in TimeScope)}).",
            "3. Estimate each task's duration in minutes.",
            "4. Describe each task and add execution tips.",
            "5. Keep the tasks in a logical order.",
            "",
            "Return only a JSON object in this format, with no other text:",
            RESPONSE_CONTRACT,
        ]
    )
    return "\n".join(lines)


__all__ = ["RESPONSE_CONTRACT", "build_system_prompt", "build_task_plan_prompt"]
