from __future__ import annotations

from dataclasses import dataclass, field

from juxtapose.core.errors import SyncError


@dataclass(frozen=True)
class Issue:
    id: str
    number: int
    title: str
    body_text: str
    state: str

    @property
    def is_open(self) -> bool:
        return self.state == "OPEN"


@dataclass(frozen=True)
class PullRequest:
    id: str
    number: int
    title: str
    body_text: str
    state: str
    file_paths: tuple[str, ...] = ()
    merged_at: str | None = None
    updated_at: str | None = None

    @property
    def is_open(self) -> bool:
        return self.state == "OPEN" and self.merged_at is None


@dataclass(frozen=True)
class FetchWindow:
    full_name: str
    since: int | None = None

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.full_name.split("/", 1)[1]

    @property
    def incremental(self) -> bool:
        return self.since is not None


@dataclass(frozen=True)
class FetchResult:
    issues: list[Issue] = field(default_factory=list)
    pull_requests: list[PullRequest] = field(default_factory=list)
    pages_fetched: int = 0
    error: SyncError | None = None
