"""Repository lifecycle state machine.

``pending -> backfilling -> active -> syncing -> active`` on the happy path;
``backfilling`` and ``syncing`` fall to ``error`` on failure, and ``error`` is
always retryable. ``backfilling`` and ``syncing`` are the in-flight states: no
new sync may start while a repository sits in one of them, unless the status
has not moved for longer than the stale window (a crashed run).
"""

from __future__ import annotations

from dataclasses import dataclass

PENDING = "pending"
BACKFILLING = "backfilling"
SYNCING = "syncing"
ACTIVE = "active"
ERROR = "error"

IN_FLIGHT_STATUSES = frozenset({BACKFILLING, SYNCING})

TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({BACKFILLING}),
    BACKFILLING: frozenset({ACTIVE, ERROR}),
    ACTIVE: frozenset({SYNCING, BACKFILLING}),
    SYNCING: frozenset({ACTIVE, ERROR}),
    ERROR: frozenset({SYNCING, BACKFILLING}),
}

MODE_BACKFILL = "backfill"
MODE_INCREMENTAL = "incremental"


@dataclass(frozen=True)
class SyncPlan:
    mode: str
    in_flight_status: str
    reclaimed: bool = False


def is_in_flight(status: str) -> bool:
    return status in IN_FLIGHT_STATUSES


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def is_stale(updated_at: int, *, now: int, stale_after_ms: int) -> bool:
    return now - updated_at > stale_after_ms


def plan_sync(
    status: str,
    last_sync_at: int,
    *,
    force_backfill: bool = False,
    updated_at: int = 0,
    now: int = 0,
    stale_after_ms: int | None = None,
) -> SyncPlan | None:
    """Pick the fetch mode and in-flight status for a trigger, or ``None`` to skip.

    A stale in-flight record is reclaimed by replaying the transition its
    crashed run would have taken from the last settled state.
    """
    reclaimed = False
    if is_in_flight(status):
        if stale_after_ms is None or not is_stale(updated_at, now=now, stale_after_ms=stale_after_ms):
            return None
        reclaimed = True
        status = ERROR

    mode = MODE_BACKFILL if force_backfill or last_sync_at == 0 else MODE_INCREMENTAL
    target = BACKFILLING if mode == MODE_BACKFILL else SYNCING
    if not can_transition(status, target):
        return None
    return SyncPlan(mode=mode, in_flight_status=target, reclaimed=reclaimed)
