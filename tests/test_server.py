from __future__ import annotations

import asyncio
import json
from pathlib import Path

from lifegit.completion import ChatCompletionClient, FakeCompletionService
from lifegit.config import LifeGitSettings
from lifegit.server import create_server
from lifegit.storage import InMemoryRepositories


def _plan() -> str:
    return json.dumps(
        {
            "totalDuration": "2 weeks",
            "tasks": [{"title": "Warm up", "description": "Easy jog", "timeScope": "daily", "estimatedDuration": 20}],
        }
    )


def test_create_server_wires_core(tmp_path: Path) -> None:
    settings = LifeGitSettings(_env_file=None, life_area_paths=(tmp_path,), plan_max_attempts=2)
    service = FakeCompletionService(default=_plan())
    repositories = InMemoryRepositories()

    server = create_server(settings, completion_service=service, repositories=repositories)

    assert server.repositories is repositories
    assert server.completion_metadata["configured"] is True
    assert server.chroma_metadata["available"] is False
    assert server.pipeline.max_attempts == 2
    assert {area.id for area in server.catalog.areas} >= {"career", "health"}

    result = asyncio.run(server.tool_handles.create_branch.fn(name="Run 5k", description="Couch to 5k"))

    assert result["task_plan"]["tasks"][0]["title"] == "Warm up"
    assert service.calls == 1
    stored = asyncio.run(repositories.branches.find_all())
    assert [branch.name for branch in stored] == ["master", "Run 5k"]


def test_create_server_falls_back_on_bad_catalog(tmp_path: Path) -> None:
    (tmp_path / "broken.yml").write_text("id: ''\ntitle: Nothing\n", encoding="utf-8")
    settings = LifeGitSettings(_env_file=None, life_area_paths=(tmp_path,))

    server = create_server(settings, repositories=InMemoryRepositories())

    assert [area.id for area in server.catalog.areas][:2] == ["career", "education"]
    assert server.completion_metadata["configured"] is False
    assert server.engine.versions is server.version_manager


def test_default_completion_client_uses_settings(tmp_path: Path) -> None:
    settings = LifeGitSettings(
        _env_file=None,
        completion_api_key="sk-test",
        completion_base_url="https://llm.example.com/v1",
    )

    server = create_server(settings, repositories=InMemoryRepositories())

    assert server.completion_metadata == {
        "model": settings.completion_model,
        "base_url": "https://llm.example.com/v1",
        "configured": True,
    }
    assert isinstance(server.pipeline._service, ChatCompletionClient)
