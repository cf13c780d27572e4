"""Score merged branches and manage life-version upgrades."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence

from .catalog import LifeAreaCatalog, default_catalog
from .errors import InvalidOperationError, UserNotFoundError
from .models import Branch, Commit, CommitType, TaskPlan, UserProfile, VersionRecord, utcnow
from .storage.guard import persist
from .storage.protocols import Repositories

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "v1.0"

UPGRADE_THRESHOLD = 5
MILESTONE_THRESHOLD = 7

_VERSION_PATTERN = re.compile(r"^\s*v?(\d+)\.(\d+)")


def parse_version(version: str) -> tuple[int, int] | None:
    """Return ``(major, minor)`` for ``"vMAJOR.MINOR"``, or None when malformed."""

    match = _VERSION_PATTERN.match(version or "")
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def next_version(current: str, important: bool) -> str:
    """Bump MAJOR for an important milestone, MINOR otherwise.

    A malformed current version is treated as v1.0.
    """

    major, minor = parse_version(current) or (1, 0)
    if important:
        return f"v{major + 1}.0"
    return f"v{major}.{minor + 1}"


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as ``left`` sorts before, equal to or after ``right``."""

    left_parts = parse_version(left) or (1, 0)
    right_parts = parse_version(right) or (1, 0)
    return (left_parts > right_parts) - (left_parts < right_parts)


@dataclass(slots=True)
class VersionUpgradeDecision:
    should_upgrade: bool
    suggested_version: str
    is_important_milestone: bool
    score: int
    reasons: list[str] = field(default_factory=list)

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons)


@dataclass(slots=True)
class VersionUpgradeProposal:
    """An upgrade the evaluator suggested and the user has not yet answered."""

    branch_id: str
    branch_name: str
    current_version: str
    suggested_version: str
    is_important_milestone: bool
    score: int
    reason: str


def task_completion_rate(task_plan: TaskPlan | None, commits: Sequence[Commit]) -> float:
    """Fraction of tasks with at least one task_complete commit pointing at them."""

    if task_plan is None or not task_plan.tasks:
        return 0.0
    recorded = {
        commit.related_task_id
        for commit in commits
        if commit.type == CommitType.TASK_COMPLETE and commit.related_task_id
    }
    completed = sum(1 for task in task_plan.tasks if task.id in recorded)
    return completed / len(task_plan.tasks)


class VersionUpgradeEvaluator:
    """Additive scoring over a branch's commits, age, completion rate and life area."""

    def __init__(self, catalog: LifeAreaCatalog | None = None) -> None:
        self._catalog = catalog or default_catalog()

    def evaluate(
        self,
        branch: Branch,
        current_version: str,
        *,
        commits: Sequence[Commit],
        task_plan: TaskPlan | None,
        now: datetime | None = None,
    ) -> VersionUpgradeDecision:
        reference = now or utcnow()
        score = 0
        reasons: list[str] = []

        commit_count = len(commits)
        if commit_count >= 10:
            score += 3
            reasons.append(f"High commit frequency ({commit_count} commits)")
        elif commit_count >= 5:
            score += 1
            reasons.append(f"Steady record keeping ({commit_count} commits)")

        duration_days = (reference - branch.created_at).total_seconds() / 86400
        if duration_days >= 7:
            score += 2
            reasons.append(f"Long-term commitment ({int(duration_days)} days)")

        rate = task_completion_rate(task_plan, commits)
        if rate >= 0.8:
            score += 3
            reasons.append(f"High completion ({int(rate * 100)}%)")
        elif rate >= 0.5:
            score += 1
            reasons.append(f"Good progress ({int(rate * 100)}%)")

        area = self._catalog.matching_area(branch.name, branch.description)
        if area is not None:
            score += 2
            reasons.append(f"Important life area ({area.title})")

        important = score >= MILESTONE_THRESHOLD
        return VersionUpgradeDecision(
            should_upgrade=score >= UPGRADE_THRESHOLD,
            suggested_version=next_version(current_version, important),
            is_important_milestone=important,
            score=score,
            reasons=reasons,
        )


class VersionManager:
    """Propose upgrades at merge time and record the ones the user confirms."""

    def __init__(
        self,
        repositories: Repositories,
        evaluator: VersionUpgradeEvaluator | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repos = repositories
        self._evaluator = evaluator or VersionUpgradeEvaluator()
        self._clock = clock or utcnow
        self.pending: VersionUpgradeProposal | None = None

    async def current_user(self) -> UserProfile:
        user = await persist("query", "user", self._repos.users.get())
        if user is None:
            raise UserNotFoundError("No user profile stored")
        return user

    async def ensure_user(self) -> UserProfile:
        user = await persist("query", "user", self._repos.users.get())
        if user is None:
            user = UserProfile(current_version=DEFAULT_VERSION, created_at=self._clock())
            await persist("create", "user", self._repos.users.save(user))
            logger.info("User profile created", extra={"version": user.current_version})
        return user

    async def evaluate_merge(self, branch: Branch) -> VersionUpgradeProposal | None:
        user = await self.ensure_user()
        commits = await persist("query", "commits", self._repos.commits.find_by_branch_id(branch.id))
        plan = await persist("query", "task plan", self._repos.task_plans.find_by_branch_id(branch.id))
        decision = self._evaluator.evaluate(
            branch, user.current_version, commits=commits, task_plan=plan, now=self._clock()
        )
        logger.info(
            "Version upgrade evaluated",
            extra={"branch_id": branch.id, "score": decision.score, "should_upgrade": decision.should_upgrade},
        )
        if not decision.should_upgrade:
            return None

        self.pending = VersionUpgradeProposal(
            branch_id=branch.id,
            branch_name=branch.name,
            current_version=user.current_version,
            suggested_version=decision.suggested_version,
            is_important_milestone=decision.is_important_milestone,
            score=decision.score,
            reason=decision.reason,
        )
        return self.pending

    async def confirm_upgrade(self, proposal: VersionUpgradeProposal | None = None) -> VersionRecord:
        upgrade = proposal or self.pending
        if upgrade is None:
            raise InvalidOperationError("No pending version upgrade to confirm")

        user = await self.current_user()
        if compare_versions(upgrade.suggested_version, user.current_version) <= 0:
            raise InvalidOperationError(
                f"Version {upgrade.suggested_version} is not newer than {user.current_version}"
            )

        completed = await persist("query", "branches", self._repos.branches.get_completed_branches())
        commits = await persist("query", "commits", self._repos.commits.find_all())
        record = VersionRecord(
            version=upgrade.suggested_version,
            upgraded_at=self._clock(),
            trigger_branch_name=upgrade.branch_name,
            description=upgrade.reason,
            is_important_milestone=upgrade.is_important_milestone,
            achievement_count=len(completed),
            total_commits_at_upgrade=len(commits),
        )
        await persist("create", "version record", self._repos.versions.create(record))
        user.current_version = record.version
        await persist("update", "user", self._repos.users.save(user))

        if self.pending is upgrade:
            self.pending = None
        logger.info(
            "Version upgraded",
            extra={"version": record.version, "important": record.is_important_milestone},
        )
        return record

    def decline_upgrade(self) -> VersionUpgradeProposal | None:
        declined, self.pending = self.pending, None
        if declined is not None:
            logger.info("Version upgrade declined", extra={"version": declined.suggested_version})
        return declined

    async def history(self) -> list[VersionRecord]:
        records = await persist("query", "version records", self._repos.versions.find_all())
        return sorted(records, key=lambda record: record.upgraded_at, reverse=True)

    async def current_version_record(self) -> VersionRecord | None:
        user = await self.current_user()
        return await persist("query", "version record", self._repos.versions.find_by_version(user.current_version))


__all__ = [
    "DEFAULT_VERSION",
    "VersionManager",
    "VersionUpgradeDecision",
    "VersionUpgradeEvaluator",
    "VersionUpgradeProposal",
    "compare_versions",
    "next_version",
    "parse_version",
    "task_completion_rate",
]
