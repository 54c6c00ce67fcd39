from __future__ import annotations

import contextvars
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from pythonjsonlogger import jsonlogger

from juxtapose.core.config import settings

# (sync_id, repository) of the sync running in this context.
_sync_ctx: contextvars.ContextVar[tuple[str | None, str | None]] = contextvars.ContextVar(
    "sync_context", default=(None, None)
)


class JsonLineFormatter(jsonlogger.JsonFormatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = super().format(record)
        return json.dumps(json.loads(payload), separators=(",", ":"), ensure_ascii=False)


def _envelope() -> dict[str, Any]:
    return {
        "service": settings.APP_NAME,
        "env": settings.APP_ENV,
        "version": settings.APP_VERSION,
        "ts": datetime.now(timezone.utc).isoformat(),
    }


class _SyncContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        sync_id, repository = _sync_ctx.get()
        if getattr(record, "sync_id", None) is None:
            record.sync_id = sync_id
        if getattr(record, "repository", None) is None:
            record.repository = repository
        if not hasattr(record, "event_type"):
            record.event_type = None
        for key, value in _envelope().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


@contextmanager
def sync_context(*, sync_id: str, repository: str) -> Iterator[None]:
    """Stamp every record logged inside the block with this sync's id and repository."""
    token = _sync_ctx.set((sync_id, repository))
    try:
        yield
    finally:
        _sync_ctx.reset(token)


def log_event(
    event_type: str,
    *,
    level: int = logging.INFO,
    payload: dict[str, Any] | None = None,
    repository: str | None = None,
) -> None:
    extra: dict[str, Any] = {"event_type": event_type, **_envelope()}
    if repository is not None:
        extra["repository"] = repository
    if payload:
        extra.update(payload)
    logging.getLogger("juxtapose.observability").log(level, event_type, extra=extra)


def configure_logging(level: str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.addFilter(_SyncContextFilter())
    handler.setFormatter(
        JsonLineFormatter(
            "%(ts)s %(levelname)s %(service)s %(env)s %(event_type)s %(sync_id)s %(repository)s %(version)s %(message)s"
        )
    )
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    root.handlers = [handler]
