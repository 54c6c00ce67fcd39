"""Single-repository sync: the one code path behind every trigger.

A sync owns its repository through a claim: the in-flight status plus the
``updated_at`` value it last wrote. The claim is renewed between stages and
checked once more right before the artifact is replaced, so a run that was
reclaimed as stale never overwrites the newer artifact of the run that took
over.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from juxtapose.core.errors import DatabaseOperationError, ErrorKind, SyncError
from juxtapose.core.logging import log_event, sync_context
from juxtapose.db.repositories.repository_records import RepositoryRecordStore
from juxtapose.schemas.vectors import VectorObject
from juxtapose.services import lifecycle, telemetry
from juxtapose.services.embedding import Embedder, embed_batch
from juxtapose.services.github.base import FetchResult, FetchWindow
from juxtapose.services.merge import KIND_ISSUE, MergeError, MergeStats, apply_merge, plan_merge
from juxtapose.services.vector_store import VectorObjectStore

LOGGER = logging.getLogger(__name__)

FULL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+/[A-Za-z0-9._-]+$")

RESULT_COMPLETED = "completed"
RESULT_SKIPPED = "skipped"
RESULT_REJECTED = "rejected"
RESULT_FAILED = "failed"

CLAIM_LOST = "SYNC_CLAIM_LOST"


class Source(Protocol):
    def fetch(self, window: FetchWindow) -> FetchResult:
        ...


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_full_name(full_name: str | None) -> str:
    return (full_name or "").strip()


def is_valid_full_name(full_name: str) -> bool:
    return bool(FULL_NAME_PATTERN.match(full_name or ""))


@dataclass(frozen=True)
class SyncOutcome:
    full_name: str
    result: str
    mode: str | None = None
    error: SyncError | None = None
    stats: dict[str, int] = field(default_factory=dict)
    synced_at: int | None = None
    status_recorded: bool = True

    @property
    def ok(self) -> bool:
        return self.result == RESULT_COMPLETED

    def as_dict(self) -> dict[str, Any]:
        return {
            "fullName": self.full_name,
            "result": self.result,
            "mode": self.mode,
            "errorCode": self.error.error_code if self.error else None,
            "errorMessage": self.error.message if self.error else None,
            "stats": dict(self.stats),
            "syncedAt": self.synced_at,
            "statusRecorded": self.status_recorded,
        }


@dataclass
class _Claim:
    full_name: str
    in_flight_status: str
    token: int


@dataclass
class _PipelineResult:
    error: SyncError | None = None
    stats: MergeStats | None = None
    vector_object: VectorObject | None = None
    size_bytes: int = 0


class SyncOrchestrator:
    def __init__(
        self,
        records: RepositoryRecordStore,
        source: Source,
        embedder: Embedder,
        vector_store: VectorObjectStore,
        *,
        stale_after_seconds: int | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if stale_after_seconds is None:
            from juxtapose.core.config import settings

            stale_after_seconds = settings.SYNC_STALE_AFTER_SECONDS
        self.records = records
        self.source = source
        self.embedder = embedder
        self.vector_store = vector_store
        self.stale_after_ms = int(stale_after_seconds) * 1000
        self.clock = clock

    def sync(self, full_name: str, *, force_backfill: bool = False) -> SyncOutcome:
        full_name = normalize_full_name(full_name)
        if not is_valid_full_name(full_name):
            error = SyncError(ErrorKind.VALIDATION, "INVALID_REPOSITORY_NAME", f"invalid repository name: {full_name!r}")
            return self._finish_early(full_name, RESULT_REJECTED, error)

        try:
            record = self.records.get(full_name)
        except DatabaseOperationError as exc:
            return self._finish_early(full_name, RESULT_FAILED, exc.as_sync_error(), status_recorded=False)
        if record is None:
            error = SyncError(ErrorKind.VALIDATION, "REPOSITORY_NOT_FOUND", f"repository {full_name} is not tracked")
            return self._finish_early(full_name, RESULT_REJECTED, error)

        claimed_at = self.clock()
        plan = lifecycle.plan_sync(
            record.status,
            record.last_sync_at,
            force_backfill=force_backfill,
            updated_at=record.updated_at,
            now=claimed_at,
            stale_after_ms=self.stale_after_ms,
        )
        if plan is None:
            log_event("sync_skipped", repository=full_name, payload={"status": record.status, "reason": "in_flight"})
            return self._finish_early(full_name, RESULT_SKIPPED, None)

        try:
            claimed = self.records.try_begin(record, target_status=plan.in_flight_status, now=claimed_at)
        except DatabaseOperationError as exc:
            return self._finish_early(full_name, RESULT_FAILED, exc.as_sync_error(), status_recorded=False)
        if not claimed:
            log_event("sync_skipped", repository=full_name, payload={"status": record.status, "reason": "claim_lost"})
            return self._finish_early(full_name, RESULT_SKIPPED, None)

        claim = _Claim(full_name=full_name, in_flight_status=plan.in_flight_status, token=claimed_at)
        with sync_context(sync_id=uuid.uuid4().hex, repository=full_name):
            return self._run_claimed(claim, record.last_sync_at, plan)

    def _run_claimed(self, claim: _Claim, last_sync_at: int, plan: lifecycle.SyncPlan) -> SyncOutcome:
        t0 = time.perf_counter()
        full_name = claim.full_name
        since = last_sync_at if plan.mode == lifecycle.MODE_INCREMENTAL else None
        if plan.reclaimed:
            log_event("sync_stale_reclaimed", level=logging.WARNING, payload={"in_flight_status": plan.in_flight_status})
        log_event("sync_started", payload={"mode": plan.mode, "since": since, "status": plan.in_flight_status})

        # Watermark is taken before the fetch so items updated mid-sync land in the next window.
        started_at = self.clock()
        try:
            pipeline = self._run_pipeline(claim, plan.mode, since)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("sync_pipeline_crashed", extra={"event_type": "sync_failed"})
            pipeline = _PipelineResult(error=SyncError(ErrorKind.INTERNAL, "INTERNAL_ERROR", str(exc) or type(exc).__name__))

        finished_at = self.clock()
        stats = pipeline.stats.as_dict() if pipeline.stats else {}
        duration = time.perf_counter() - t0

        if pipeline.error is None:
            recorded = self._record(
                lambda: self.records.mark_active(
                    full_name,
                    in_flight_status=claim.in_flight_status,
                    claimed_at=claim.token,
                    last_sync_at=started_at,
                    now=finished_at,
                )
            )
            if recorded is not True:
                error = recorded if isinstance(recorded, SyncError) else self._claim_lost(claim)
                return self._claim_failed(full_name, plan.mode, error, stats, duration)
            log_event(
                "sync_completed",
                payload={"mode": plan.mode, "duration_ms": int(duration * 1000), "size_bytes": pipeline.size_bytes, **stats},
            )
            telemetry.record_sync(mode=plan.mode, result=RESULT_COMPLETED, duration_seconds=duration)
            synced_at = pipeline.vector_object.synced_at if pipeline.vector_object else finished_at
            return SyncOutcome(full_name, RESULT_COMPLETED, plan.mode, None, stats, synced_at)

        if pipeline.error.error_code == CLAIM_LOST:
            return self._claim_failed(full_name, plan.mode, pipeline.error, stats, duration)

        log_event(
            "sync_failed",
            level=logging.ERROR,
            payload={
                "mode": plan.mode,
                "error_kind": pipeline.error.kind.value,
                "error_code": pipeline.error.error_code,
                "error_message": pipeline.error.message,
            },
        )
        recorded = self._record(
            lambda: self.records.mark_error(
                full_name,
                in_flight_status=claim.in_flight_status,
                claimed_at=claim.token,
                error_message=pipeline.error.describe(),
                now=finished_at,
            )
        )
        if recorded is False:
            log_event("sync_claim_lost", level=logging.WARNING, payload={"mode": plan.mode})
        telemetry.record_sync(mode=plan.mode, result=RESULT_FAILED, duration_seconds=duration)
        return SyncOutcome(full_name, RESULT_FAILED, plan.mode, pipeline.error, stats, status_recorded=recorded is True)

    def _run_pipeline(self, claim: _Claim, mode: str, since: int | None) -> _PipelineResult:
        full_name = claim.full_name
        loaded = self.vector_store.load(full_name)
        if loaded.error:
            return _PipelineResult(error=loaded.error)
        error = self._renew(claim)
        if error:
            return _PipelineResult(error=error)

        fetched = self.source.fetch(FetchWindow(full_name=full_name, since=since))
        if fetched.error:
            return _PipelineResult(error=fetched.error)
        error = self._renew(claim)
        if error:
            return _PipelineResult(error=error)

        plan = plan_merge(
            loaded.vector_object,
            full_name,
            fetched.issues,
            fetched.pull_requests,
            authoritative=mode == lifecycle.MODE_BACKFILL,
        )
        embedded = embed_batch(self.embedder, plan.texts)
        if embedded.error:
            return _PipelineResult(error=embedded.error, stats=plan.stats)
        issue_count = sum(1 for target in plan.targets if target.kind == KIND_ISSUE)
        telemetry.record_embedded(issues=issue_count, pull_requests=len(plan.targets) - issue_count)

        try:
            vector_object = apply_merge(plan, embedded.vectors, synced_at=self.clock())
        except MergeError as exc:
            return _PipelineResult(error=SyncError(ErrorKind.FETCH, "EMBEDDINGS_COUNT_MISMATCH", str(exc)), stats=plan.stats)

        # Last check before the artifact is replaced.
        error = self._renew(claim)
        if error:
            return _PipelineResult(error=error, stats=plan.stats)
        saved = self.vector_store.save(vector_object)
        if saved.error:
            return _PipelineResult(error=saved.error, stats=plan.stats)
        return _PipelineResult(stats=plan.stats, vector_object=vector_object, size_bytes=saved.size_bytes)

    def _renew(self, claim: _Claim) -> SyncError | None:
        now = self.clock()
        try:
            renewed = self.records.heartbeat(
                claim.full_name, in_flight_status=claim.in_flight_status, claimed_at=claim.token, now=now
            )
        except DatabaseOperationError as exc:
            return exc.as_sync_error()
        if not renewed:
            return self._claim_lost(claim)
        claim.token = now
        return None

    def _record(self, write: Callable[[], bool]) -> bool | SyncError:
        try:
            return write()
        except DatabaseOperationError as exc:
            LOGGER.error("sync_status_write_failed", extra={"event_type": "sync_failed", "error_code": exc.error_code})
            return exc.as_sync_error()

    @staticmethod
    def _claim_lost(claim: _Claim) -> SyncError:
        return SyncError(
            ErrorKind.STORAGE,
            CLAIM_LOST,
            f"{claim.full_name} is no longer {claim.in_flight_status} under this sync",
            retryable=True,
        )

    @staticmethod
    def _claim_failed(full_name: str, mode: str, error: SyncError, stats: dict[str, int], duration: float) -> SyncOutcome:
        if error.error_code == CLAIM_LOST:
            log_event("sync_claim_lost", level=logging.WARNING, payload={"mode": mode})
        telemetry.record_sync(mode=mode, result=RESULT_FAILED, duration_seconds=duration)
        return SyncOutcome(full_name, RESULT_FAILED, mode, error, stats, status_recorded=False)

    @staticmethod
    def _finish_early(full_name: str, result: str, error: SyncError | None, *, status_recorded: bool = True) -> SyncOutcome:
        telemetry.record_sync(mode=None, result=result)
        return SyncOutcome(full_name=full_name, result=result, error=error, status_recorded=status_recorded)
