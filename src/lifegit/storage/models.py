"""Record types shared by the persistent storage adapters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class EntityKind(str, Enum):
    BRANCH = "branch"
    COMMIT = "commit"
    TASK_PLAN = "task_plan"
    VERSION_RECORD = "version_record"
    USER = "user"


@dataclass(slots=True)
class StoredDocument:
    """A single entity as held in the document store."""

    id: str
    kind: EntityKind
    entity_id: str
    document: str
    metadata: dict[str, Any]
    timestamp: datetime


__all__ = ["EntityKind", "StoredDocument"]
