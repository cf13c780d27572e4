"""Domain models for branches, task plans, commits and version records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class BranchStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @property
    def display_name(self) -> str:
        return _BRANCH_STATUS_NAMES[self]


_BRANCH_STATUS_NAMES = {
    BranchStatus.ACTIVE: "In progress",
    BranchStatus.COMPLETED: "Completed",
    BranchStatus.ABANDONED: "Abandoned",
}


class TimeScope(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: Any) -> "TimeScope":
        """Map a loosely formatted scope onto the enum; unknown values become daily."""

        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for scope in cls:
                if normalized == scope.value:
                    return scope
        return cls.DAILY

    @property
    def display_name(self) -> str:
        return _TIME_SCOPE_NAMES[self]


_TIME_SCOPE_NAMES = {
    TimeScope.DAILY: "Daily task",
    TimeScope.WEEKLY: "Weekly task",
    TimeScope.MONTHLY: "Monthly task",
}


class CommitCategory(str, Enum):
    ACHIEVEMENT = "achievement"
    LEARNING = "learning"
    PERSONAL = "personal"
    LIFESTYLE = "lifestyle"
    SOCIAL = "social"
    EXPERIENCE = "experience"
    PROFESSIONAL = "professional"
    GROWTH = "growth"
    OTHER = "other"


class CommitType(str, Enum):
    TASK_COMPLETE = "task_complete"
    LEARNING = "learning"
    REFLECTION = "reflection"
    MILESTONE = "milestone"
    HABIT = "habit"
    EXERCISE = "exercise"
    READING = "reading"
    CREATIVITY = "creativity"
    SOCIAL = "social"
    HEALTH = "health"
    FINANCE = "finance"
    CAREER = "career"
    RELATIONSHIP = "relationship"
    TRAVEL = "travel"
    SKILL = "skill"
    PROJECT = "project"
    IDEA = "idea"
    CHALLENGE = "challenge"
    GRATITUDE = "gratitude"
    CUSTOM = "custom"

    @property
    def info(self) -> "CommitTypeInfo":
        return COMMIT_TYPE_INFO[self]

    @property
    def display_name(self) -> str:
        return self.info.display_name

    @property
    def category(self) -> CommitCategory:
        return self.info.category

    @property
    def default_message(self) -> str:
        return self.info.default_message


@dataclass(frozen=True, slots=True)
class CommitTypeInfo:
    display_name: str
    category: CommitCategory
    default_message: str


# Single source of truth for commit type metadata; every CommitType must appear here.
COMMIT_TYPE_INFO: dict[CommitType, CommitTypeInfo] = {
    CommitType.TASK_COMPLETE: CommitTypeInfo("Task complete", CommitCategory.ACHIEVEMENT, "Completed a task"),
    CommitType.LEARNING: CommitTypeInfo("Learning", CommitCategory.LEARNING, "Learned something new"),
    CommitType.REFLECTION: CommitTypeInfo("Reflection", CommitCategory.PERSONAL, "Wrote down some thoughts"),
    CommitType.MILESTONE: CommitTypeInfo("Milestone", CommitCategory.ACHIEVEMENT, "Reached a milestone"),
    CommitType.HABIT: CommitTypeInfo("Habit", CommitCategory.LIFESTYLE, "Kept up a habit"),
    CommitType.EXERCISE: CommitTypeInfo("Exercise", CommitCategory.LIFESTYLE, "Worked out"),
    CommitType.READING: CommitTypeInfo("Reading", CommitCategory.LEARNING, "Read for a while"),
    CommitType.CREATIVITY: CommitTypeInfo("Creativity", CommitCategory.EXPERIENCE, "Made something"),
    CommitType.SOCIAL: CommitTypeInfo("Social", CommitCategory.SOCIAL, "Spent time with people"),
    CommitType.HEALTH: CommitTypeInfo("Health", CommitCategory.LIFESTYLE, "Took care of my health"),
    CommitType.FINANCE: CommitTypeInfo("Finance", CommitCategory.PROFESSIONAL, "Managed my finances"),
    CommitType.CAREER: CommitTypeInfo("Career", CommitCategory.PROFESSIONAL, "Moved my career forward"),
    CommitType.RELATIONSHIP: CommitTypeInfo("Relationship", CommitCategory.SOCIAL, "Invested in a relationship"),
    CommitType.TRAVEL: CommitTypeInfo("Travel", CommitCategory.EXPERIENCE, "Went somewhere new"),
    CommitType.SKILL: CommitTypeInfo("Skill", CommitCategory.LEARNING, "Practised a skill"),
    CommitType.PROJECT: CommitTypeInfo("Project", CommitCategory.ACHIEVEMENT, "Made project progress"),
    CommitType.IDEA: CommitTypeInfo("Idea", CommitCategory.PERSONAL, "Captured an idea"),
    CommitType.CHALLENGE: CommitTypeInfo("Challenge", CommitCategory.GROWTH, "Overcame a challenge"),
    CommitType.GRATITUDE: CommitTypeInfo("Gratitude", CommitCategory.PERSONAL, "Noted something I am grateful for"),
    CommitType.CUSTOM: CommitTypeInfo("Custom", CommitCategory.OTHER, "Recorded progress"),
}


class TaskItem(BaseModel):
    """A single unit of work inside a task plan."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    estimated_duration: int = Field(..., gt=0, description="Estimated minutes, always positive.")
    time_scope: TimeScope = TimeScope.DAILY
    order_index: int = Field(default=0, ge=0)
    is_completed: bool = False
    completed_at: datetime | None = None
    is_ai_generated: bool = False
    execution_tips: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    last_modified_at: datetime | None = None

    @field_validator("title")
    @classmethod
    def _require_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Task title must not be empty")
        return normalized

    def mark_completed(self, now: datetime | None = None) -> None:
        stamp = now or utcnow()
        self.is_completed = True
        self.completed_at = stamp
        self.last_modified_at = stamp

    def mark_incomplete(self, now: datetime | None = None) -> None:
        self.is_completed = False
        self.completed_at = None
        self.last_modified_at = now or utcnow()

    @property
    def formatted_duration(self) -> str:
        if self.estimated_duration < 60:
            return f"{self.estimated_duration} min"
        hours, minutes = divmod(self.estimated_duration, 60)
        if minutes == 0:
            return f"{hours} h"
        return f"{hours} h {minutes} min"


class TaskPlan(BaseModel):
    """Ordered breakdown of a goal, owned by exactly one non-master branch."""

    id: str = Field(default_factory=new_id)
    branch_id: str
    total_duration: str
    is_ai_generated: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    last_modified_at: datetime | None = None
    tasks: list[TaskItem] = Field(default_factory=list)

    def ordered_tasks(self) -> list[TaskItem]:
        return sorted(self.tasks, key=lambda task: task.order_index)

    def renumber(self) -> None:
        """Re-assign order indices densely from zero, keeping the current order."""

        ordered = self.ordered_tasks()
        for index, task in enumerate(ordered):
            task.order_index = index
        self.tasks = ordered

    def find_task(self, task_id: str) -> TaskItem | None:
        return next((task for task in self.tasks if task.id == task_id), None)

    @property
    def completed_count(self) -> int:
        return sum(1 for task in self.tasks if task.is_completed)

    @property
    def progress(self) -> float:
        if not self.tasks:
            return 0.0
        return self.completed_count / len(self.tasks)

    @property
    def total_estimated_duration(self) -> int:
        return sum(task.estimated_duration for task in self.tasks)


class Branch(BaseModel):
    """A goal tracked as an isolated line of work, or the master timeline."""

    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    status: BranchStatus = BranchStatus.ACTIVE
    is_master: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    expected_completion_date: datetime | None = None
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    parent_branch_id: str | None = None

    def recompute_progress(self, plan: TaskPlan | None) -> float:
        self.progress = plan.progress if plan is not None else 0.0
        return self.progress


class Commit(BaseModel):
    """Timestamped progress record attached to a branch."""

    id: str = Field(default_factory=new_id)
    message: str
    type: CommitType
    timestamp: datetime = Field(default_factory=utcnow)
    branch_id: str
    related_task_id: str | None = None


class VersionRecord(BaseModel):
    """Immutable audit entry for a life-version upgrade."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    version: str
    upgraded_at: datetime = Field(default_factory=utcnow)
    trigger_branch_name: str
    description: str
    is_important_milestone: bool = False
    achievement_count: int = 0
    total_commits_at_upgrade: int = 0


class UserProfile(BaseModel):
    id: str = Field(default_factory=new_id)
    current_version: str = "v1.0"
    created_at: datetime = Field(default_factory=utcnow)


__all__ = [
    "Branch",
    "BranchStatus",
    "COMMIT_TYPE_INFO",
    "Commit",
    "CommitCategory",
    "CommitType",
    "CommitTypeInfo",
    "TaskItem",
    "TaskPlan",
    "TimeScope",
    "UserProfile",
    "VersionRecord",
    "new_id",
    "utcnow",
]
