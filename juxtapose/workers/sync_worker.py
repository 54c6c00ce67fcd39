from __future__ import annotations

import logging
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from functools import partial

from juxtapose.core.config import settings
from juxtapose.core.errors import ErrorKind, SyncError
from juxtapose.core.logging import log_event
from juxtapose.db.repositories.repository_records import RepositoryRecordStore
from juxtapose.db.session import SessionLocal
from juxtapose.services.repositories import build_vector_store, default_repository_service
from juxtapose.services.sync import RESULT_FAILED, SyncOutcome, now_ms
from juxtapose.services.vector_store import VectorObjectStore

LOGGER = logging.getLogger(__name__)


@contextmanager
def session_scope():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def sync_one(full_name: str, vector_store: VectorObjectStore | None = None) -> SyncOutcome:
    with session_scope() as db:
        return default_repository_service(db, vector_store).trigger_sync(full_name)


def _sync_guarded(full_name: str, vector_store: VectorObjectStore) -> SyncOutcome:
    try:
        return sync_one(full_name, vector_store)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("scheduled_sync_crashed", extra={"event_type": "sync_failed", "repository": full_name})
        error = SyncError(ErrorKind.INTERNAL, "INTERNAL_ERROR", str(exc) or type(exc).__name__)
        return SyncOutcome(full_name, RESULT_FAILED, error=error, status_recorded=False)


def list_due_repositories(now: int) -> list[str]:
    with session_scope() as db:
        due = RepositoryRecordStore(db).list_due(
            synced_before=now - settings.SYNC_INTERVAL_SECONDS * 1000,
            stale_before=now - settings.SYNC_STALE_AFTER_SECONDS * 1000,
        )
    return [record.full_name for record in due]


def run_scheduled_pass(now: int | None = None) -> list[SyncOutcome]:
    full_names = list_due_repositories(now if now is not None else now_ms())
    if not full_names:
        return []
    # Built once on this thread: boto3 client creation is not thread-safe.
    vector_store = build_vector_store()
    with ThreadPoolExecutor(max_workers=settings.SYNC_MAX_WORKERS, thread_name_prefix="sync") as pool:
        outcomes = list(pool.map(partial(_sync_guarded, vector_store=vector_store), full_names))
    results = Counter(outcome.result for outcome in outcomes)
    log_event("scheduled_pass_completed", payload={"repositories": len(outcomes), **dict(results)})
    return outcomes


def run_forever(poll_interval_seconds: float | None = None) -> None:
    interval = settings.SYNC_POLL_INTERVAL_SECONDS if poll_interval_seconds is None else poll_interval_seconds
    while True:
        try:
            run_scheduled_pass()
        except Exception:  # noqa: BLE001
            LOGGER.exception("scheduled_pass_failed")
        time.sleep(max(0.1, interval))


if __name__ == "__main__":
    from juxtapose.core.logging import configure_logging

    configure_logging()
    run_forever()
