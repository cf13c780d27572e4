"""Chroma-based persistence layer."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol, TypeVar

from pydantic import BaseModel

from ..models import Branch, BranchStatus, Commit, CommitType, TaskPlan, UserProfile, VersionRecord
from .models import EntityKind, StoredDocument

ModelT = TypeVar("ModelT", bound=BaseModel)

_USER_ENTITY_ID = "current"


class ChromaUnavailableError(RuntimeError):
    """Raised when the Chroma client cannot be constructed."""


class CollectionProtocol(Protocol):
    """Protocol for the minimal Chroma collection API used by LifeGit."""

    def upsert(
        self,
        *,
        documents: Iterable[str],
        metadatas: Iterable[dict[str, Any]],
        ids: Iterable[str],
    ) -> None:
        ...

    def get(
        self,
        *,
        ids: Iterable[str] | None = None,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> dict[str, list[Any]]:
        ...

    def delete(self, *, ids: Iterable[str]) -> None:
        ...


class ClientProtocol(Protocol):
    """Protocol for the minimal Chroma client API used by LifeGit."""

    def get_or_create_collection(self, name: str) -> CollectionProtocol:
        ...


class ChromaStore:
    """Keep LifeGit entities as JSON documents in a single Chroma collection.

    Each document carries scalar metadata (``kind``, ``entity_id`` and a few
    per-kind fields) so reads can be narrowed by kind and then filtered in
    Python. Chroma rejects ``None`` metadata values, so those are dropped.
    """

    def __init__(
        self,
        path: Path,
        *,
        collection_name: str = "lifegit",
        client_factory: Callable[[], ClientProtocol] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = Path(path)
        self._collection_name = collection_name
        self._client_factory = client_factory or self._default_client_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._client: ClientProtocol | None = None
        self._collection: CollectionProtocol | None = None

    def _default_client_factory(self) -> ClientProtocol:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - depends on environment
            raise ChromaUnavailableError(
                "chromadb package is not installed; install lifegit with persistence extras"
            ) from exc

        return chromadb.PersistentClient(path=str(self._path))

    def _ensure_collection(self) -> CollectionProtocol:
        if self._collection is None:
            client = self._client or self._client_factory()
            self._client = client
            self._collection = client.get_or_create_collection(self._collection_name)
        return self._collection

    @staticmethod
    def document_id(kind: EntityKind, entity_id: str) -> str:
        return f"{kind.value}:{entity_id}"

    def _convert_result(self, result: dict[str, list[Any]]) -> list[StoredDocument]:
        documents: list[StoredDocument] = []
        ids = result.get("ids") or []
        bodies = result.get("documents") or []
        metadatas = result.get("metadatas") or []
        for doc_id, body, metadata in zip(ids, bodies, metadatas):
            metadata = metadata or {}
            timestamp_raw = metadata.get("timestamp")
            timestamp = (
                datetime.fromisoformat(timestamp_raw)
                if isinstance(timestamp_raw, str)
                else self._clock()
            )
            documents.append(
                StoredDocument(
                    id=doc_id,
                    kind=EntityKind(metadata.get("kind", doc_id.split(":", 1)[0])),
                    entity_id=metadata.get("entity_id", doc_id.split(":", 1)[-1]),
                    document=body,
                    metadata=metadata,
                    timestamp=timestamp,
                )
            )
        documents.sort(key=lambda document: document.timestamp)
        return documents

    def ping(self) -> bool:
        """Verify that the underlying collection can be obtained."""

        self._ensure_collection()
        return True

    def put(
        self,
        kind: EntityKind,
        entity_id: str,
        body: str,
        *,
        metadata: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> StoredDocument:
        collection = self._ensure_collection()
        stamp = timestamp or self._clock()
        record_metadata: dict[str, Any] = {
            "kind": kind.value,
            "entity_id": entity_id,
            "timestamp": stamp.isoformat(),
        }
        if metadata:
            record_metadata.update({key: value for key, value in metadata.items() if value is not None})

        doc_id = self.document_id(kind, entity_id)
        collection.upsert(documents=[body], metadatas=[record_metadata], ids=[doc_id])
        return StoredDocument(
            id=doc_id,
            kind=kind,
            entity_id=entity_id,
            document=body,
            metadata=record_metadata,
            timestamp=stamp,
        )

    def get(self, kind: EntityKind, entity_id: str) -> StoredDocument | None:
        collection = self._ensure_collection()
        result = collection.get(ids=[self.document_id(kind, entity_id)])
        documents = self._convert_result(result)
        return documents[0] if documents else None

    def delete(self, kind: EntityKind, entity_ids: Iterable[str]) -> None:
        ids = [self.document_id(kind, entity_id) for entity_id in entity_ids]
        if ids:
            self._ensure_collection().delete(ids=ids)

    def query(self, kind: EntityKind, *, filters: dict[str, Any] | None = None) -> list[StoredDocument]:
        """Return documents of ``kind`` whose metadata matches every filter."""

        collection = self._ensure_collection()
        documents = self._convert_result(collection.get(where={"kind": kind.value}))
        if not filters:
            return documents
        return [
            document
            for document in documents
            if all(document.metadata.get(key) == value for key, value in filters.items())
        ]


class _ChromaRepository:
    kind: EntityKind

    def __init__(self, store: ChromaStore) -> None:
        self._store = store

    def _load(self, model: type[ModelT], documents: Iterable[StoredDocument]) -> list[ModelT]:
        return [model.model_validate_json(document.document) for document in documents]

    def _require_absent(self, entity_id: str) -> None:
        if self._store.get(self.kind, entity_id) is not None:
            raise KeyError(f"{self.kind.value} '{entity_id}' already exists")

    def _require_present(self, entity_id: str) -> None:
        if self._store.get(self.kind, entity_id) is None:
            raise KeyError(f"{self.kind.value} '{entity_id}' does not exist")


class ChromaBranchRepository(_ChromaRepository):
    kind = EntityKind.BRANCH

    def _save(self, branch: Branch) -> None:
        self._store.put(
            self.kind,
            branch.id,
            branch.model_dump_json(),
            metadata={"status": branch.status.value, "is_master": branch.is_master},
            timestamp=branch.created_at,
        )

    async def create(self, branch: Branch) -> None:
        self._require_absent(branch.id)
        self._save(branch)

    async def update(self, branch: Branch) -> None:
        self._require_present(branch.id)
        self._save(branch)

    async def delete(self, branch_id: str) -> None:
        commits = self._store.query(EntityKind.COMMIT, filters={"branch_id": branch_id})
        plans = self._store.query(EntityKind.TASK_PLAN, filters={"branch_id": branch_id})
        self._store.delete(EntityKind.COMMIT, [document.entity_id for document in commits])
        self._store.delete(EntityKind.TASK_PLAN, [document.entity_id for document in plans])
        self._store.delete(self.kind, [branch_id])

    async def find_by_id(self, branch_id: str) -> Branch | None:
        document = self._store.get(self.kind, branch_id)
        return Branch.model_validate_json(document.document) if document else None

    async def find_all(self) -> list[Branch]:
        return self._load(Branch, self._store.query(self.kind))

    async def find_by_status(self, status: BranchStatus) -> list[Branch]:
        documents = self._store.query(self.kind, filters={"status": status.value, "is_master": False})
        return self._load(Branch, documents)

    async def find_master_branch(self) -> Branch | None:
        branches = self._load(Branch, self._store.query(self.kind, filters={"is_master": True}))
        return branches[0] if branches else None

    async def get_active_branches(self) -> list[Branch]:
        return await self.find_by_status(BranchStatus.ACTIVE)

    async def get_completed_branches(self) -> list[Branch]:
        return await self.find_by_status(BranchStatus.COMPLETED)


class ChromaCommitRepository(_ChromaRepository):
    kind = EntityKind.COMMIT

    def _save(self, commit: Commit) -> None:
        self._store.put(
            self.kind,
            commit.id,
            commit.model_dump_json(),
            metadata={
                "branch_id": commit.branch_id,
                "commit_type": commit.type.value,
                "related_task_id": commit.related_task_id,
            },
            timestamp=commit.timestamp,
        )

    def _newest_first(self, filters: dict[str, Any] | None = None) -> list[Commit]:
        commits = self._load(Commit, self._store.query(self.kind, filters=filters))
        return sorted(commits, key=lambda commit: commit.timestamp, reverse=True)

    async def create(self, commit: Commit) -> None:
        self._require_absent(commit.id)
        self._save(commit)

    async def update(self, commit: Commit) -> None:
        self._require_present(commit.id)
        self._save(commit)

    async def delete(self, commit_id: str) -> None:
        self._store.delete(self.kind, [commit_id])

    async def find_by_id(self, commit_id: str) -> Commit | None:
        document = self._store.get(self.kind, commit_id)
        return Commit.model_validate_json(document.document) if document else None

    async def find_all(self) -> list[Commit]:
        return self._newest_first()

    async def find_by_branch_id(self, branch_id: str) -> list[Commit]:
        return self._newest_first({"branch_id": branch_id})

    async def find_by_type(self, commit_type: CommitType) -> list[Commit]:
        return self._newest_first({"commit_type": commit_type.value})

    async def find_by_branch_id_and_type(self, branch_id: str, commit_type: CommitType) -> list[Commit]:
        return self._newest_first({"branch_id": branch_id, "commit_type": commit_type.value})

    async def find_by_date_range(self, start: datetime, end: datetime) -> list[Commit]:
        return [commit for commit in self._newest_first() if start <= commit.timestamp <= end]

    async def find_by_branch_id_and_date_range(
        self, branch_id: str, start: datetime, end: datetime
    ) -> list[Commit]:
        return [
            commit
            for commit in self._newest_first({"branch_id": branch_id})
            if start <= commit.timestamp <= end
        ]

    async def get_commit_count(self, branch_id: str) -> int:
        return len(self._store.query(self.kind, filters={"branch_id": branch_id}))

    async def get_recent_commits(self, limit: int) -> list[Commit]:
        return self._newest_first()[:limit]

    async def search_by_content(self, text: str) -> list[Commit]:
        needle = text.lower()
        return [commit for commit in self._newest_first() if needle in commit.message.lower()]


class ChromaTaskPlanRepository(_ChromaRepository):
    kind = EntityKind.TASK_PLAN

    def _save(self, plan: TaskPlan) -> None:
        self._store.put(
            self.kind,
            plan.id,
            plan.model_dump_json(),
            metadata={"branch_id": plan.branch_id, "is_ai_generated": plan.is_ai_generated},
            timestamp=plan.created_at,
        )

    async def create(self, plan: TaskPlan) -> None:
        self._require_absent(plan.id)
        self._save(plan)

    async def update(self, plan: TaskPlan) -> None:
        self._require_present(plan.id)
        self._save(plan)

    async def delete(self, plan_id: str) -> None:
        self._store.delete(self.kind, [plan_id])

    async def find_by_id(self, plan_id: str) -> TaskPlan | None:
        document = self._store.get(self.kind, plan_id)
        return TaskPlan.model_validate_json(document.document) if document else None

    async def find_by_branch_id(self, branch_id: str) -> TaskPlan | None:
        plans = self._load(TaskPlan, self._store.query(self.kind, filters={"branch_id": branch_id}))
        return plans[0] if plans else None

    async def find_all(self) -> list[TaskPlan]:
        return self._load(TaskPlan, self._store.query(self.kind))

    async def find_ai_generated(self) -> list[TaskPlan]:
        return self._load(TaskPlan, self._store.query(self.kind, filters={"is_ai_generated": True}))

    async def find_manually_created(self) -> list[TaskPlan]:
        return self._load(TaskPlan, self._store.query(self.kind, filters={"is_ai_generated": False}))


class ChromaVersionRecordRepository(_ChromaRepository):
    kind = EntityKind.VERSION_RECORD

    async def create(self, record: VersionRecord) -> None:
        self._store.put(
            self.kind,
            record.id,
            record.model_dump_json(),
            metadata={"version": record.version},
            timestamp=record.upgraded_at,
        )

    async def find_all(self) -> list[VersionRecord]:
        return self._load(VersionRecord, self._store.query(self.kind))

    async def find_by_version(self, version: str) -> VersionRecord | None:
        records = self._load(VersionRecord, self._store.query(self.kind, filters={"version": version}))
        return records[0] if records else None


class ChromaUserRepository(_ChromaRepository):
    kind = EntityKind.USER

    async def get(self) -> UserProfile | None:
        document = self._store.get(self.kind, _USER_ENTITY_ID)
        return UserProfile.model_validate_json(document.document) if document else None

    async def save(self, user: UserProfile) -> None:
        self._store.put(self.kind, _USER_ENTITY_ID, user.model_dump_json(), timestamp=user.created_at)


class ChromaRepositories:
    """All repositories for one user, persisted through a shared :class:`ChromaStore`."""

    def __init__(self, store: ChromaStore) -> None:
        self.store = store
        self.branches = ChromaBranchRepository(store)
        self.commits = ChromaCommitRepository(store)
        self.task_plans = ChromaTaskPlanRepository(store)
        self.versions = ChromaVersionRecordRepository(store)
        self.users = ChromaUserRepository(store)


__all__ = [
    "ChromaBranchRepository",
    "ChromaCommitRepository",
    "ChromaRepositories",
    "ChromaStore",
    "ChromaTaskPlanRepository",
    "ChromaUnavailableError",
    "ChromaUserRepository",
    "ChromaVersionRecordRepository",
]
