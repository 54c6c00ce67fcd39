from __future__ import annotations

from typing import Any, Callable

from juxtapose.core.logging import log_event
from juxtapose.db.repositories.repository_records import RepositoryRecord, RepositoryRecordStore
from juxtapose.services import lifecycle
from juxtapose.services.sync import SyncOrchestrator, SyncOutcome, is_valid_full_name, normalize_full_name, now_ms
from juxtapose.services.vector_store import VectorObjectStore


class RepositoryServiceError(Exception):
    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class RepositoryService:
    """Operations exposed to the outer layers (CLI, scheduler, HTTP)."""

    def __init__(
        self,
        records: RepositoryRecordStore,
        orchestrator: SyncOrchestrator,
        vector_store: VectorObjectStore,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.records = records
        self.orchestrator = orchestrator
        self.vector_store = vector_store
        self.clock = clock

    @staticmethod
    def _validate(full_name: str) -> str:
        name = normalize_full_name(full_name)
        if not is_valid_full_name(name):
            raise RepositoryServiceError("INVALID_REPOSITORY_NAME", f"invalid repository name: {full_name!r}")
        return name

    def trigger_backfill(self, full_name: str) -> SyncOutcome:
        return self.orchestrator.sync(full_name, force_backfill=True)

    def trigger_sync(self, full_name: str) -> SyncOutcome:
        return self.orchestrator.sync(full_name)

    def get_status(self, full_name: str) -> RepositoryRecord | None:
        return self.records.get(self._validate(full_name))

    def list_repositories(self) -> list[RepositoryRecord]:
        return self.records.list_all()

    def register(self, full_name: str) -> RepositoryRecord:
        name = self._validate(full_name)
        existing = self.records.get(name)
        if existing is not None:
            return existing
        record = self.records.create(name, now=self.clock())
        log_event("repository_registered", repository=name)
        return record

    def remove(self, full_name: str) -> bool:
        name = self._validate(full_name)
        record = self.records.get(name)
        if record is None:
            return False
        if lifecycle.is_in_flight(record.status) and not lifecycle.is_stale(
            record.updated_at, now=self.clock(), stale_after_ms=self.orchestrator.stale_after_ms
        ):
            raise RepositoryServiceError("REPOSITORY_BUSY", f"repository {name} is {record.status}")
        # Artifact goes first: a record without an artifact is a normal pre-backfill state.
        error = self.vector_store.delete(name)
        if error is not None:
            raise RepositoryServiceError(error.error_code, error.message)
        removed = self.records.delete(name)
        log_event("repository_removed", repository=name)
        return removed


def build_vector_store() -> VectorObjectStore:
    """One S3-backed store; boto3 clients are safe to share across worker threads once built."""
    from juxtapose.core.config import settings
    from juxtapose.services.storage import ObjectStorage, StorageConfig

    storage = ObjectStorage(
        StorageConfig(
            endpoint=settings.S3_ENDPOINT,
            access_key=settings.S3_ACCESS_KEY,
            secret_key=settings.S3_SECRET_KEY,
            region=settings.S3_REGION,
            secure=settings.S3_SECURE,
            bucket=settings.S3_BUCKET_VECTORS,
        )
    )
    return VectorObjectStore(storage)


def default_repository_service(db: Any, vector_store: VectorObjectStore | None = None) -> RepositoryService:
    from juxtapose.clients.embeddings_client import EmbeddingsClient
    from juxtapose.core.config import settings
    from juxtapose.services.github.source import GitHubSource

    records = RepositoryRecordStore(db)
    if vector_store is None:
        vector_store = build_vector_store()
    orchestrator = SyncOrchestrator(
        records,
        GitHubSource(),
        EmbeddingsClient(),
        vector_store,
        stale_after_seconds=settings.SYNC_STALE_AFTER_SECONDS,
    )
    return RepositoryService(records, orchestrator, vector_store)
