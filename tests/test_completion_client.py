from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from lifegit.completion import (
    ChatCompletionClient,
    CompletionFailureKind,
    CompletionServiceError,
    FakeCompletionService,
    RecoveryAction,
    classify_failure,
    extract_json_object,
)
from lifegit.config import LifeGitSettings


def _client(handler, *, api_key: str | None = "sk-test") -> ChatCompletionClient:
    return ChatCompletionClient(
        base_url="https://llm.example.com/v1/",
        api_key=api_key,
        model="planner-small",
        max_tokens=512,
        temperature=0.2,
        system_prompt="system text",
        transport=httpx.MockTransport(handler),
    )


def _reply(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def test_complete_posts_chat_request() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_reply('{"ok": true}'))

    result = asyncio.run(_client(handler).complete("Plan my goal"))

    assert result == '{"ok": true}'
    assert seen["url"] == "https://llm.example.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "planner-small"
    assert seen["body"]["max_tokens"] == 512
    assert seen["body"]["messages"] == [
        {"role": "system", "content": "system text"},
        {"role": "user", "content": "Plan my goal"},
    ]


@pytest.mark.parametrize(
    ("status", "kind"),
    [
        (400, CompletionFailureKind.BAD_REQUEST),
        (401, CompletionFailureKind.AUTHENTICATION_FAILED),
        (403, CompletionFailureKind.AUTHENTICATION_FAILED),
        (404, CompletionFailureKind.MODEL_UNAVAILABLE),
        (429, CompletionFailureKind.RATE_LIMITED),
        (500, CompletionFailureKind.SERVER_ERROR),
        (502, CompletionFailureKind.SERVER_ERROR),
        (503, CompletionFailureKind.MODEL_UNAVAILABLE),
    ],
)
def test_http_status_is_classified(status: int, kind: CompletionFailureKind) -> None:
    client = _client(lambda request: httpx.Response(status, json={"error": "nope"}))

    with pytest.raises(CompletionServiceError) as excinfo:
        asyncio.run(client.complete("hi"))

    assert excinfo.value.kind is kind
    assert excinfo.value.status_code == status


def test_transport_failures_are_classified() -> None:
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    def offline(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    with pytest.raises(CompletionServiceError) as timed_out:
        asyncio.run(_client(timeout).complete("hi"))
    with pytest.raises(CompletionServiceError) as unreachable:
        asyncio.run(_client(offline).complete("hi"))

    assert timed_out.value.kind is CompletionFailureKind.TIMEOUT
    assert unreachable.value.kind is CompletionFailureKind.NETWORK_UNAVAILABLE


def test_missing_api_key_fails_without_calling() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=_reply("{}"))

    client = _client(handler, api_key=None)

    with pytest.raises(CompletionServiceError) as excinfo:
        asyncio.run(client.complete("hi"))

    assert excinfo.value.kind is CompletionFailureKind.AUTHENTICATION_FAILED
    assert not excinfo.value.retryable
    assert calls == []
    assert not client.configured


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json=_reply("   ")),
    ],
)
def test_unusable_bodies_are_invalid_responses(response: httpx.Response) -> None:
    client = _client(lambda request: response)

    with pytest.raises(CompletionServiceError) as excinfo:
        asyncio.run(client.complete("hi"))

    assert excinfo.value.kind is CompletionFailureKind.INVALID_RESPONSE
    assert excinfo.value.retryable


def test_from_settings_uses_configuration() -> None:
    settings = LifeGitSettings(
        _env_file=None,
        completion_base_url="https://other.example.com/api",
        completion_api_key="sk-live",
        completion_model="planner-large",
    )

    client = ChatCompletionClient.from_settings(settings)

    assert client.base_url == "https://other.example.com/api"
    assert client.model == "planner-large"
    assert client.configured


def test_classify_failure_maps_exceptions() -> None:
    assert classify_failure(asyncio.TimeoutError()).kind is CompletionFailureKind.TIMEOUT
    assert classify_failure(ValueError("bad json")).kind is CompletionFailureKind.INVALID_RESPONSE
    assert classify_failure(RuntimeError("boom")).kind is CompletionFailureKind.SERVER_ERROR

    offline = classify_failure(httpx.ConnectError("no route"))
    assert offline.kind is CompletionFailureKind.NETWORK_UNAVAILABLE
    assert offline.action is RecoveryAction.USE_OFFLINE_MODE

    auth = classify_failure(CompletionServiceError(CompletionFailureKind.AUTHENTICATION_FAILED, "bad key"))
    assert auth.retryable is False
    assert auth.action is RecoveryAction.CHECK_SETTINGS
    assert auth.message == "bad key"

    limited = classify_failure(CompletionServiceError(CompletionFailureKind.RATE_LIMITED, "slow down"))
    assert limited.retryable is True
    assert limited.action is RecoveryAction.WAIT_AND_RETRY


def test_extract_json_object_strips_fences_and_prose() -> None:
    text = 'Here you go:\n```json\n{"totalDuration": "1 week", "tasks": [{"a": {}}]}\n```\nGood luck!'

    assert json.loads(extract_json_object(text)) == {"totalDuration": "1 week", "tasks": [{"a": {}}]}
    with pytest.raises(ValueError):
        extract_json_object("no object here")


def test_fake_service_replays_script() -> None:
    failure = CompletionServiceError(CompletionFailureKind.TIMEOUT, "slow")
    service = FakeCompletionService([failure, "first"], default="fallback")

    async def scenario() -> list[str]:
        results = []
        with pytest.raises(CompletionServiceError):
            await service.complete("a")
        results.append(await service.complete("b"))
        results.append(await service.complete("c"))
        return results

    assert asyncio.run(scenario()) == ["first", "fallback"]
    assert service.calls == 3
    assert service.prompts == ["a", "b", "c"]

    with pytest.raises(CompletionServiceError):
        asyncio.run(FakeCompletionService().complete("x"))
