from __future__ import annotations

from prometheus_client import Counter, Histogram

syncs_total = Counter("juxtapose_syncs_total", "Repository sync attempts by outcome", ["mode", "result"])
sync_duration_seconds = Histogram("juxtapose_sync_duration_seconds", "Repository sync duration (seconds)", ["mode"])
embedded_texts_total = Counter("juxtapose_embedded_texts_total", "Texts submitted for embedding", ["kind"])


def record_sync(*, mode: str | None, result: str, duration_seconds: float | None = None) -> None:
    label = mode or "none"
    syncs_total.labels(mode=label, result=result).inc()
    if duration_seconds is not None:
        sync_duration_seconds.labels(mode=label).observe(duration_seconds)


def record_embedded(*, issues: int, pull_requests: int) -> None:
    if issues:
        embedded_texts_total.labels(kind="issue").inc(issues)
    if pull_requests:
        embedded_texts_total.labels(kind="pull_request").inc(pull_requests)
