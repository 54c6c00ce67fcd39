import json
import logging

import pytest

pytest.importorskip("pythonjsonlogger")

from juxtapose.core.logging import configure_logging, log_event, sync_context


REQUIRED_FIELDS = {"ts", "levelname", "service", "env", "event_type", "sync_id", "repository", "version", "message"}


def _last_json_line(stderr: str) -> dict:
    lines = [line for line in stderr.splitlines() if line.strip()]
    assert lines
    return json.loads(lines[-1])


def test_configure_logging_includes_unified_envelope(capsys):
    configure_logging("INFO")
    logger = logging.getLogger("test.logging")
    logger.info("event_without_context")

    payload = _last_json_line(capsys.readouterr().err)
    assert REQUIRED_FIELDS.issubset(payload.keys())
    assert payload["message"] == "event_without_context"
    assert payload["sync_id"] is None


def test_log_event_uses_sync_context(capsys):
    configure_logging("INFO")
    with sync_context(sync_id="sync-42", repository="acme/widgets"):
        log_event("sync_started", payload={"mode": "incremental"})

    payload = _last_json_line(capsys.readouterr().err)
    assert payload["event_type"] == "sync_started"
    assert payload["sync_id"] == "sync-42"
    assert payload["repository"] == "acme/widgets"
    assert payload["mode"] == "incremental"


def test_explicit_repository_overrides_context(capsys):
    configure_logging("INFO")
    with sync_context(sync_id="sync-1", repository="acme/widgets"):
        log_event("repository_registered", repository="acme/gadgets")

    payload = _last_json_line(capsys.readouterr().err)
    assert payload["repository"] == "acme/gadgets"


def test_nested_sync_context_restores_outer(capsys):
    configure_logging("INFO")
    with sync_context(sync_id="outer", repository="acme/widgets"):
        with sync_context(sync_id="inner", repository="acme/gadgets"):
            log_event("sync_started")
        inner = _last_json_line(capsys.readouterr().err)
        log_event("sync_completed")
        outer = _last_json_line(capsys.readouterr().err)
    log_event("scheduled_pass_completed")
    after = _last_json_line(capsys.readouterr().err)

    assert (inner["sync_id"], inner["repository"]) == ("inner", "acme/gadgets")
    assert (outer["sync_id"], outer["repository"]) == ("outer", "acme/widgets")
    assert after["sync_id"] is None
    assert after["repository"] is None
