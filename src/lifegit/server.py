"""FastMCP server bootstrap for LifeGit."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .catalog import CatalogLoadError, default_catalog, load_catalog
from .commits import CommitRecorder
from .completion import ChatCompletionClient, CompletionService
from .config import LifeGitSettings, get_settings
from .engine import BranchLifecycleEngine
from .locking import BranchLocks
from .planning import TaskDecompositionPipeline, TaskPlanEditor, build_system_prompt
from .storage import ChromaRepositories, ChromaStore, ChromaUnavailableError, InMemoryRepositories, Repositories
from .tools import register_tools
from .versioning import VersionManager, VersionUpgradeEvaluator


def configure_logging(level: str) -> None:
    """Configure root logging for the LifeGit server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[LifeGitSettings] = None,
    completion_service: CompletionService | None = None,
    repositories: Repositories | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with the LifeGit core wired in."""

    settings = settings or get_settings()

    catalog_error: str | None = None
    try:
        catalog = load_catalog(settings.life_area_paths)
    except CatalogLoadError as exc:
        catalog_error = str(exc)
        catalog = default_catalog()

    chroma_metadata: dict[str, Any] = {
        "available": False,
        "path": str(settings.chroma_persist_path),
        "collection": "lifegit",
        "error": None,
    }
    if repositories is None:
        try:
            chroma_store = ChromaStore(settings.chroma_persist_path)
            chroma_store.ping()
            repositories = ChromaRepositories(chroma_store)
            chroma_metadata["available"] = True
        except ChromaUnavailableError as exc:
            chroma_metadata["error"] = str(exc)
            repositories = InMemoryRepositories()
    storage_backend = type(repositories).__name__

    completion_metadata: dict[str, Any] = {
        "model": settings.completion_model,
        "base_url": settings.completion_base_url,
        "configured": completion_service is not None or bool(settings.completion_api_key),
    }
    if completion_service is None:
        completion_service = ChatCompletionClient.from_settings(settings, system_prompt=build_system_prompt())

    locks = BranchLocks()
    recorder = CommitRecorder(repositories.commits)
    versions = VersionManager(repositories, VersionUpgradeEvaluator(catalog))
    pipeline = TaskDecompositionPipeline.from_settings(settings, completion_service)
    engine = BranchLifecycleEngine(
        repositories,
        pipeline,
        recorder=recorder,
        versions=versions,
        locks=locks,
    )
    editor = TaskPlanEditor(repositories.branches, repositories.task_plans, recorder, locks=locks)

    server = FastMCP(
        name="LifeGit MCP",
        version=__version__,
        instructions=(
            "LifeGit tracks personal goals as branches of a life timeline. Create a branch "
            "for a goal to get an AI task plan, record commits as you make progress, then "
            "complete and merge the branch to grow your life version."
        ),
    )

    handles = register_tools(server, engine=engine, editor=editor, recorder=recorder, versions=versions)

    @server.resource(
        "resource://lifegit/status",
        name="lifegit_status",
        title="LifeGit MCP Status",
        description="Provides the current runtime status for the LifeGit MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        last_failure = pipeline.last_failure
        pending = versions.pending
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "completion": completion_metadata,
            "storage": {"backend": storage_backend, "chroma": chroma_metadata},
            "catalog": {
                "areas": [area.id for area in catalog.areas],
                "error": catalog_error,
            },
            "engine": {
                "is_creating": engine.is_creating,
                "is_generating": engine.is_generating,
                "is_merging": engine.is_merging,
                "error": str(engine.error) if engine.error else None,
            },
            "pipeline": {
                "attempts": pipeline.attempts,
                "max_attempts": pipeline.max_attempts,
                "last_failure": (
                    {
                        "kind": last_failure.kind.value,
                        "retryable": last_failure.retryable,
                        "action": last_failure.action.value,
                        "message": last_failure.message,
                    }
                    if last_failure
                    else None
                ),
            },
            "version": {
                "pending_upgrade": pending.suggested_version if pending else None,
            },
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    setattr(server, "repositories", repositories)
    setattr(server, "chroma_metadata", chroma_metadata)
    setattr(server, "completion_metadata", completion_metadata)
    setattr(server, "catalog", catalog)
    setattr(server, "engine", engine)
    setattr(server, "editor", editor)
    setattr(server, "pipeline", pipeline)
    setattr(server, "version_manager", versions)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the LifeGit MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching LifeGit MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "completion_configured": getattr(server, "completion_metadata", {}).get("configured"),
            "chroma_available": getattr(server, "chroma_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
