"""Storage abstractions for LifeGit."""

from .chroma import ChromaRepositories, ChromaStore, ChromaUnavailableError
from .memory import InMemoryRepositories
from .models import EntityKind, StoredDocument
from .protocols import (
    BranchRepository,
    CommitRepository,
    Repositories,
    TaskPlanRepository,
    UserRepository,
    VersionRecordRepository,
)

__all__ = [
    "BranchRepository",
    "ChromaRepositories",
    "ChromaStore",
    "ChromaUnavailableError",
    "CommitRepository",
    "EntityKind",
    "InMemoryRepositories",
    "Repositories",
    "StoredDocument",
    "TaskPlanRepository",
    "UserRepository",
    "VersionRecordRepository",
]
