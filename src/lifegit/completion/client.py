"""Async clients for the text completion service."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

import httpx

from ..config import LifeGitSettings
from .errors import CompletionFailureKind, CompletionServiceError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a practical life coach who turns personal goals into concrete, "
    "achievable task plans. Always answer with a single JSON object."
)

_STATUS_KINDS = {
    400: CompletionFailureKind.BAD_REQUEST,
    401: CompletionFailureKind.AUTHENTICATION_FAILED,
    403: CompletionFailureKind.AUTHENTICATION_FAILED,
    404: CompletionFailureKind.MODEL_UNAVAILABLE,
    429: CompletionFailureKind.RATE_LIMITED,
    503: CompletionFailureKind.MODEL_UNAVAILABLE,
}


class CompletionService(Protocol):
    """Anything that can turn a prompt into text."""

    async def complete(self, prompt: str) -> str:
        ...


def kind_for_status(status_code: int) -> CompletionFailureKind:
    kind = _STATUS_KINDS.get(status_code)
    if kind is not None:
        return kind
    if status_code >= 500:
        return CompletionFailureKind.SERVER_ERROR
    return CompletionFailureKind.BAD_REQUEST


class ChatCompletionClient:
    """Call an OpenAI-compatible ``/chat/completions`` endpoint.

    Every failure is raised as :class:`CompletionServiceError`; retrying is
    left to the caller.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None,
        model: str,
        timeout: float = 30.0,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._system_prompt = system_prompt
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: LifeGitSettings,
        *,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ChatCompletionClient":
        return cls(
            base_url=settings.completion_base_url,
            api_key=settings.completion_api_key,
            model=settings.completion_model,
            timeout=settings.completion_timeout,
            max_tokens=settings.completion_max_tokens,
            temperature=settings.completion_temperature,
            system_prompt=system_prompt,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def model(self) -> str:
        return self._model

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self._model,
            "messages": [
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }

    async def complete(self, prompt: str) -> str:
        if not self._api_key:
            raise CompletionServiceError(
                CompletionFailureKind.AUTHENTICATION_FAILED, "No completion API key configured"
            )

        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post("/chat/completions", json=self._payload(prompt), headers=headers)
        except httpx.TimeoutException as exc:
            raise CompletionServiceError(CompletionFailureKind.TIMEOUT, f"Request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise CompletionServiceError(
                CompletionFailureKind.NETWORK_UNAVAILABLE, f"Network unavailable: {exc}"
            ) from exc

        if response.status_code != 200:
            kind = kind_for_status(response.status_code)
            logger.warning(
                "Completion request failed",
                extra={"status_code": response.status_code, "kind": kind.value},
            )
            raise CompletionServiceError(
                kind,
                f"Completion service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        return self._extract_content(response)

    @staticmethod
    def _extract_content(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError as exc:
            raise CompletionServiceError(
                CompletionFailureKind.INVALID_RESPONSE, "Completion response is not JSON"
            ) from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise CompletionServiceError(
                CompletionFailureKind.INVALID_RESPONSE, "Completion response has no message content"
            ) from exc

        if not isinstance(content, str) or not content.strip():
            raise CompletionServiceError(CompletionFailureKind.INVALID_RESPONSE, "Completion response is empty")
        return content


class FakeCompletionService:
    """Test double that replays scripted completions.

    Each scripted entry is either returned (a string) or raised (an exception).
    Once the script is exhausted the ``default`` entry is used.
    """

    def __init__(
        self,
        responses: Iterable[str | BaseException] | None = None,
        *,
        default: str | BaseException | None = None,
    ) -> None:
        self._responses = list(responses or [])
        self._default = default
        self._prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self._prompts.append(prompt)
        entry = self._responses.pop(0) if self._responses else self._default
        if entry is None:
            raise CompletionServiceError(CompletionFailureKind.INVALID_RESPONSE, "No scripted completion left")
        if isinstance(entry, BaseException):
            raise entry
        return entry

    @property
    def prompts(self) -> list[str]:
        return self._prompts

    @property
    def calls(self) -> int:
        return len(self._prompts)


__all__ = [
    "ChatCompletionClient",
    "CompletionService",
    "DEFAULT_SYSTEM_PROMPT",
    "FakeCompletionService",
    "kind_for_status",
]
