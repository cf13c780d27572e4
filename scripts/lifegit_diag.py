"""LifeGit diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections import Counter

from lifegit.commits import CommitRecorder
from lifegit.config import LifeGitSettings
from lifegit.models import BranchStatus
from lifegit.storage import ChromaRepositories, ChromaStore, ChromaUnavailableError
from lifegit.versioning import DEFAULT_VERSION


def load_store(settings: LifeGitSettings) -> ChromaRepositories:
    try:
        store = ChromaStore(settings.chroma_persist_path)
        store.ping()
    except ChromaUnavailableError as exc:
        print(f"Chroma unavailable: {exc}")
        raise SystemExit(1)
    return ChromaRepositories(store)


def cmd_branches(args: argparse.Namespace) -> None:
    repos = load_store(LifeGitSettings())
    if args.status:
        branches = asyncio.run(repos.branches.find_by_status(BranchStatus(args.status)))
    else:
        branches = asyncio.run(repos.branches.find_all())
    print(json.dumps([branch.model_dump(mode="json") for branch in branches], indent=2, ensure_ascii=False))


def cmd_commits(args: argparse.Namespace) -> None:
    repos = load_store(LifeGitSettings())
    commits = asyncio.run(repos.commits.find_by_branch_id(args.branch_id))
    if args.limit is not None and args.limit > 0:
        commits = commits[: args.limit]
    print(json.dumps([commit.model_dump(mode="json") for commit in commits], indent=2, ensure_ascii=False))


def cmd_versions(args: argparse.Namespace) -> None:
    repos = load_store(LifeGitSettings())
    records = asyncio.run(repos.versions.find_all())
    records.sort(key=lambda record: record.upgraded_at, reverse=True)
    print(json.dumps([record.model_dump(mode="json") for record in records], indent=2, ensure_ascii=False))


async def _collect_metrics(repos: ChromaRepositories) -> dict[str, object]:
    branches = await repos.branches.find_all()
    commits = await repos.commits.find_all()
    user = await repos.users.get()
    streak = await CommitRecorder(repos.commits).current_streak()

    status_counts = Counter(branch.status.value for branch in branches if not branch.is_master)
    return {
        "branches_total": sum(status_counts.values()),
        "status_counts": dict(status_counts),
        "master_present": any(branch.is_master for branch in branches),
        "commits_total": len(commits),
        "current_version": user.current_version if user else DEFAULT_VERSION,
        "current_streak": streak,
    }


def cmd_metrics(args: argparse.Namespace) -> None:
    repos = load_store(LifeGitSettings())
    metrics = asyncio.run(_collect_metrics(repos))
    print(json.dumps(metrics, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="LifeGit diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_branches = sub.add_parser("branches", help="List goal branches")
    p_branches.add_argument("--status", choices=[status.value for status in BranchStatus])
    p_branches.set_defaults(func=cmd_branches)

    p_commits = sub.add_parser("commits", help="List commits of a branch, newest first")
    p_commits.add_argument("--branch-id", required=True)
    p_commits.add_argument(
        "--limit",
        type=int,
        default=None,
        help="If provided, show only the latest N commits",
    )
    p_commits.set_defaults(func=cmd_commits)

    p_versions = sub.add_parser("versions", help="List life-version upgrades, newest first")
    p_versions.set_defaults(func=cmd_versions)

    p_metrics = sub.add_parser("metrics", help="Show branch/commit counts, version and streak")
    p_metrics.set_defaults(func=cmd_metrics)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
