"""Failure taxonomy for the completion service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import json

import httpx
from pydantic import ValidationError


class CompletionFailureKind(str, Enum):
    NETWORK_UNAVAILABLE = "network_unavailable"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    AUTHENTICATION_FAILED = "authentication_failed"
    BAD_REQUEST = "bad_request"
    INVALID_RESPONSE = "invalid_response"
    MODEL_UNAVAILABLE = "model_unavailable"
    SERVER_ERROR = "server_error"

    @property
    def retryable(self) -> bool:
        return self not in _NON_RETRYABLE


_NON_RETRYABLE = frozenset({CompletionFailureKind.AUTHENTICATION_FAILED, CompletionFailureKind.BAD_REQUEST})


class RecoveryAction(str, Enum):
    RETRY = "retry"
    WAIT_AND_RETRY = "wait_and_retry"
    USE_OFFLINE_MODE = "use_offline_mode"
    CHECK_SETTINGS = "check_settings"


_RECOVERY_ACTIONS = {
    CompletionFailureKind.NETWORK_UNAVAILABLE: RecoveryAction.USE_OFFLINE_MODE,
    CompletionFailureKind.TIMEOUT: RecoveryAction.RETRY,
    CompletionFailureKind.RATE_LIMITED: RecoveryAction.WAIT_AND_RETRY,
    CompletionFailureKind.AUTHENTICATION_FAILED: RecoveryAction.CHECK_SETTINGS,
    CompletionFailureKind.BAD_REQUEST: RecoveryAction.CHECK_SETTINGS,
    CompletionFailureKind.INVALID_RESPONSE: RecoveryAction.RETRY,
    CompletionFailureKind.MODEL_UNAVAILABLE: RecoveryAction.WAIT_AND_RETRY,
    CompletionFailureKind.SERVER_ERROR: RecoveryAction.WAIT_AND_RETRY,
}


class CompletionServiceError(RuntimeError):
    """Raised when the completion service cannot produce a usable answer."""

    def __init__(
        self,
        kind: CompletionFailureKind,
        message: str,
        *,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


@dataclass(slots=True)
class FailureInfo:
    """Classification of a failed completion attempt."""

    kind: CompletionFailureKind
    retryable: bool
    action: RecoveryAction
    message: str


def _kind_for(exc: BaseException) -> CompletionFailureKind:
    if isinstance(exc, CompletionServiceError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return CompletionFailureKind.TIMEOUT
    if isinstance(exc, httpx.TransportError):
        return CompletionFailureKind.NETWORK_UNAVAILABLE
    if isinstance(exc, (ValidationError, json.JSONDecodeError, ValueError, KeyError, TypeError)):
        return CompletionFailureKind.INVALID_RESPONSE
    return CompletionFailureKind.SERVER_ERROR


def classify_failure(exc: BaseException) -> FailureInfo:
    """Map any exception raised during a completion attempt onto the failure taxonomy."""

    kind = _kind_for(exc)
    return FailureInfo(
        kind=kind,
        retryable=kind.retryable,
        action=_RECOVERY_ACTIONS[kind],
        message=str(exc) or exc.__class__.__name__,
    )


__all__ = [
    "CompletionFailureKind",
    "CompletionServiceError",
    "FailureInfo",
    "RecoveryAction",
    "classify_failure",
]
