"""Completion service port and adapters."""

from .client import ChatCompletionClient, CompletionService, FakeCompletionService
from .errors import (
    CompletionFailureKind,
    CompletionServiceError,
    FailureInfo,
    RecoveryAction,
    classify_failure,
)
from .utils import extract_json_object

__all__ = [
    "ChatCompletionClient",
    "CompletionFailureKind",
    "CompletionService",
    "CompletionServiceError",
    "FailureInfo",
    "FakeCompletionService",
    "RecoveryAction",
    "classify_failure",
    "extract_json_object",
]
