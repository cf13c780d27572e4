"""Tool registration for the LifeGit MCP server."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from fastmcp import Context, FastMCP

from ..commits import CommitRecorder
from ..engine import BranchLifecycleEngine
from ..errors import InvalidOperationError
from ..models import Branch, BranchStatus, Commit, CommitType, TaskPlan, VersionRecord
from ..planning import TaskPlanEditor, calculate_progress
from ..versioning import VersionManager, VersionUpgradeProposal

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    create_branch: Any
    complete_branch: Any
    merge_branch: Any
    abandon_branch: Any
    regenerate_task_plan: Any
    list_branches: Any
    branch_detail: Any
    record_commit: Any
    toggle_task: Any
    commit_streak: Any
    confirm_version_upgrade: Any
    decline_version_upgrade: Any
    version_history: Any


def _branch_payload(branch: Branch) -> dict[str, Any]:
    payload = branch.model_dump(mode="json")
    payload["status_display"] = branch.status.display_name
    return payload


def _plan_payload(plan: TaskPlan | None) -> dict[str, Any] | None:
    if plan is None:
        return None
    payload = plan.model_dump(mode="json", exclude={"tasks"})
    payload["tasks"] = [
        {**task.model_dump(mode="json"), "formatted_duration": task.formatted_duration}
        for task in plan.ordered_tasks()
    ]
    payload["progress"] = plan.progress
    return payload


def _commit_payload(commit: Commit) -> dict[str, Any]:
    payload = commit.model_dump(mode="json")
    payload["type_display"] = commit.type.display_name
    return payload


def _record_payload(record: VersionRecord) -> dict[str, Any]:
    return record.model_dump(mode="json")


def _proposal_payload(proposal: VersionUpgradeProposal | None) -> dict[str, Any] | None:
    return asdict(proposal) if proposal is not None else None


def _parse_commit_type(value: str) -> CommitType:
    try:
        return CommitType(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(commit_type.value for commit_type in CommitType)
        raise ValueError(f"Unknown commit type '{value}'. Expected one of: {allowed}") from exc


def _parse_status(value: str | None) -> BranchStatus | None:
    if value is None:
        return None
    try:
        return BranchStatus(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(status.value for status in BranchStatus)
        raise ValueError(f"Unknown branch status '{value}'. Expected one of: {allowed}") from exc


def register_tools(
    server: FastMCP,
    *,
    engine: BranchLifecycleEngine,
    editor: TaskPlanEditor,
    recorder: CommitRecorder,
    versions: VersionManager,
) -> ToolHandles:
    """Register LifeGit's MCP tools on the server."""

    async def _create_branch(
        name: str,
        description: str = "",
        timeframe: str | None = None,
        manual_plan: bool = False,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Create a goal branch and attach a task plan."""

        if manual_plan:
            branch, plan = await engine.create_branch_with_manual_plan(name, description)
        else:
            branch, plan = await engine.create_branch(name, description, timeframe)

        _emit_log(
            context,
            "info",
            "Created branch",
            extra={"branch_id": branch.id, "ai_plan": plan.is_ai_generated, "tasks": len(plan.tasks)},
        )
        return {"branch": _branch_payload(branch), "task_plan": _plan_payload(plan)}

    async def _complete_branch(branch_id: str, context: Context | None = None) -> dict[str, Any]:
        """Mark an active branch as completed."""

        branch = await engine.complete_branch(await engine.get_branch(branch_id))
        _emit_log(context, "info", "Completed branch", extra={"branch_id": branch_id})
        return {"branch": _branch_payload(branch)}

    async def _merge_branch(branch_id: str, context: Context | None = None) -> dict[str, Any]:
        """Merge a completed branch into master and report any version proposal."""

        outcome = await engine.merge_branch(await engine.get_branch(branch_id))
        _emit_log(
            context,
            "info",
            "Merged branch",
            extra={"branch_id": branch_id, "upgrade_proposed": outcome.proposal is not None},
        )
        return {
            "merge_commit": _commit_payload(outcome.merge_commit),
            "version_proposal": _proposal_payload(outcome.proposal),
        }

    async def _abandon_branch(
        branch_id: str,
        reflection: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Abandon an active branch, optionally recording a reflection."""

        branch = await engine.abandon_branch(await engine.get_branch(branch_id), reflection)
        _emit_log(context, "info", "Abandoned branch", extra={"branch_id": branch_id})
        return {"branch": _branch_payload(branch)}

    async def _regenerate_task_plan(
        branch_id: str,
        timeframe: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Replace a branch's task plan with a freshly generated one."""

        plan = await engine.regenerate_task_plan(await engine.get_branch(branch_id), timeframe)
        _emit_log(
            context,
            "info",
            "Regenerated task plan",
            extra={"branch_id": branch_id, "ai_plan": plan.is_ai_generated},
        )
        return {"task_plan": _plan_payload(plan)}

    async def _list_branches(status: str | None = None, context: Context | None = None) -> list[dict[str, Any]]:
        """List goal branches, optionally filtered by status."""

        branches = await engine.list_branches(_parse_status(status))
        _emit_log(context, "debug", "Listing branches", extra={"count": len(branches)})
        return [_branch_payload(branch) for branch in branches]

    async def _branch_detail(
        branch_id: str,
        commit_limit: int = 20,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Return a branch with its plan, statistics and latest commits."""

        branch = await engine.get_branch(branch_id)
        plan = await engine.get_task_plan(branch)
        statistics = await engine.get_branch_statistics(branch)
        commits = await recorder.for_branch(branch_id)
        progress = calculate_progress(plan) if plan is not None else None
        _emit_log(context, "debug", "Branch detail", extra={"branch_id": branch_id})
        return {
            "branch": _branch_payload(branch),
            "task_plan": _plan_payload(plan),
            "statistics": asdict(statistics),
            "plan_progress": (
                {
                    **asdict(progress),
                    "remaining_tasks": progress.remaining_tasks,
                    "remaining_minutes": progress.remaining_minutes,
                }
                if progress is not None
                else None
            ),
            "commits": [_commit_payload(commit) for commit in commits[: max(commit_limit, 0)]],
        }

    async def _record_commit(
        branch_id: str,
        message: str | None = None,
        commit_type: str = CommitType.CUSTOM.value,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Record progress on a branch; the type's default message is used when none is given.

        Task completions are recorded by ``toggle_task`` so the commit stays
        linked to the task it completes.
        """

        parsed = _parse_commit_type(commit_type)
        if parsed is CommitType.TASK_COMPLETE:
            raise InvalidOperationError("Use toggle_task to record a task completion")
        branch = await engine.get_branch(branch_id)
        commit = await recorder.create_quick(parsed, branch.id, message)
        _emit_log(
            context,
            "info",
            "Recorded commit",
            extra={"branch_id": branch_id, "commit_type": commit.type.value},
        )
        return _commit_payload(commit)

    async def _toggle_task(branch_id: str, task_id: str, context: Context | None = None) -> dict[str, Any]:
        """Flip a task between done and not done and return the branch's new progress."""

        task = await editor.toggle_task_completion(branch_id, task_id)
        branch = await engine.get_branch(branch_id)
        _emit_log(
            context,
            "info",
            "Toggled task",
            extra={"branch_id": branch_id, "task_id": task_id, "completed": task.is_completed},
        )
        return {"task": task.model_dump(mode="json"), "branch_progress": branch.progress}

    async def _commit_streak(branch_id: str | None = None, context: Context | None = None) -> dict[str, Any]:
        """Report consecutive days with at least one commit, ending today."""

        streak = await recorder.current_streak(branch_id)
        _emit_log(context, "debug", "Commit streak", extra={"branch_id": branch_id, "streak": streak})
        return {"branch_id": branch_id, "streak": streak}

    async def _confirm_version_upgrade(context: Context | None = None) -> dict[str, Any]:
        """Accept the pending version upgrade and record it."""

        record = await versions.confirm_upgrade()
        _emit_log(context, "info", "Confirmed version upgrade", extra={"version": record.version})
        return _record_payload(record)

    def _decline_version_upgrade(context: Context | None = None) -> dict[str, Any]:
        """Discard the pending version upgrade."""

        declined = versions.decline_upgrade()
        _emit_log(context, "info", "Declined version upgrade", extra={"had_pending": declined is not None})
        return {"declined": _proposal_payload(declined)}

    async def _version_history(context: Context | None = None) -> dict[str, Any]:
        """Return the current life version and every recorded upgrade, newest first."""

        user = await versions.ensure_user()
        history = await versions.history()
        return {
            "current_version": user.current_version,
            "pending": _proposal_payload(versions.pending),
            "history": [_record_payload(record) for record in history],
        }

    tool_create_branch = server.tool(
        name="create_branch",
        description=(
            "Create a goal branch. The goal is broken into a task plan by the AI planner; "
            "if the planner is unavailable a single-task manual plan is attached instead."
        ),
    )(_create_branch)

    tool_complete_branch = server.tool(
        name="complete_branch",
        description="Mark an active goal branch as completed and record a milestone on it.",
    )(_complete_branch)

    tool_merge_branch = server.tool(
        name="merge_branch",
        description=(
            "Merge a completed goal into the master timeline. Returns the merge commit and, "
            "when the goal qualifies, a proposed life-version upgrade awaiting confirmation."
        ),
    )(_merge_branch)

    tool_abandon_branch = server.tool(
        name="abandon_branch",
        description="Abandon an active goal branch, optionally recording a reflection.",
    )(_abandon_branch)

    tool_regenerate = server.tool(
        name="regenerate_task_plan",
        description="Discard a branch's task plan, including task completion, and generate a new one.",
    )(_regenerate_task_plan)

    tool_list_branches = server.tool(
        name="list_branches",
        description="List goal branches; filter by status (active, completed, abandoned).",
    )(_list_branches)

    tool_branch_detail = server.tool(
        name="branch_detail",
        description="Show a branch with its task plan, statistics and recent commits.",
    )(_branch_detail)

    tool_record_commit = server.tool(
        name="record_commit",
        description="Record a progress commit on a branch. Task completions go through toggle_task.",
    )(_record_commit)

    tool_toggle_task = server.tool(
        name="toggle_task",
        description="Toggle a task's completion; completing a task also records a task_complete commit.",
    )(_toggle_task)

    tool_commit_streak = server.tool(
        name="commit_streak",
        description="Count consecutive days with commits, for one branch or overall.",
    )(_commit_streak)

    tool_confirm = server.tool(
        name="confirm_version_upgrade",
        description="Confirm the pending life-version upgrade proposed by the last merge.",
    )(_confirm_version_upgrade)

    tool_decline = server.tool(
        name="decline_version_upgrade",
        description="Decline the pending life-version upgrade.",
    )(_decline_version_upgrade)

    tool_history = server.tool(
        name="version_history",
        description="Show the current life version and the history of upgrades.",
    )(_version_history)

    return ToolHandles(
        create_branch=tool_create_branch,
        complete_branch=tool_complete_branch,
        merge_branch=tool_merge_branch,
        abandon_branch=tool_abandon_branch,
        regenerate_task_plan=tool_regenerate,
        list_branches=tool_list_branches,
        branch_detail=tool_branch_detail,
        record_commit=tool_record_commit,
        toggle_task=tool_toggle_task,
        commit_streak=tool_commit_streak,
        confirm_version_upgrade=tool_confirm,
        decline_version_upgrade=tool_decline,
        version_history=tool_history,
    )


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)


__all__ = ["ToolHandles", "register_tools"]
