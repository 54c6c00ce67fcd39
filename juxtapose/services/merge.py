"""Merge freshly fetched issues and pull requests into a repository's vector object.

Planning and applying are split so the embedding call sits between them:
``plan_merge`` decides which items need a vector and collects their texts in
one ordered batch; ``apply_merge`` pairs the returned vectors with those items
by position and builds the complete replacement object in memory.

Issues are re-embedded whenever they are open in the fetch window. Pull
requests are re-embedded only when their content hash changed. Closed or
merged items are always removed, whether or not their hash matched. Items
outside the fetch window are left as they are, unless the fetch is
authoritative (a backfill lists every open item), in which case unseen entries
are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from juxtapose.schemas.vectors import ItemVector, PullRequestVector, VectorObject
from juxtapose.services.content import hash_pull_request, prep_issue, prep_pull_request
from juxtapose.services.github.base import Issue, PullRequest

KIND_ISSUE = "issue"
KIND_PULL_REQUEST = "pull_request"


@dataclass(frozen=True)
class EmbeddingTarget:
    kind: str
    id: str
    number: int
    hash: str | None = None


@dataclass
class MergeStats:
    issues_embedded: int = 0
    issues_deleted: int = 0
    pull_requests_embedded: int = 0
    pull_requests_reused: int = 0
    pull_requests_deleted: int = 0
    entries_dropped: int = 0

    def as_dict(self) -> dict[str, int]:
        return dict(self.__dict__)


@dataclass
class MergePlan:
    repo: str
    issues: dict[str, ItemVector]
    pull_requests: dict[str, PullRequestVector]
    texts: list[str] = field(default_factory=list)
    targets: list[EmbeddingTarget] = field(default_factory=list)
    stats: MergeStats = field(default_factory=MergeStats)


class MergeError(ValueError):
    pass


def _last_wins(items: list) -> list:
    by_id = {}
    for item in items:
        by_id.pop(item.id, None)
        by_id[item.id] = item
    return list(by_id.values())


def plan_merge(
    previous: VectorObject | None,
    repo: str,
    issues: list[Issue],
    pull_requests: list[PullRequest],
    *,
    authoritative: bool = False,
) -> MergePlan:
    base_issues = dict(previous.issues) if previous else {}
    base_pull_requests = dict(previous.pull_requests) if previous else {}
    issues = _last_wins(issues)
    pull_requests = _last_wins(pull_requests)

    stats = MergeStats()
    if authoritative:
        seen_issues = {issue.id for issue in issues}
        seen_pull_requests = {pr.id for pr in pull_requests}
        for key in [key for key in base_issues if key not in seen_issues]:
            del base_issues[key]
            stats.entries_dropped += 1
        for key in [key for key in base_pull_requests if key not in seen_pull_requests]:
            del base_pull_requests[key]
            stats.entries_dropped += 1

    plan = MergePlan(repo=repo, issues=base_issues, pull_requests=base_pull_requests, stats=stats)

    for issue in issues:
        if issue.is_open:
            plan.texts.append(prep_issue(issue))
            plan.targets.append(EmbeddingTarget(KIND_ISSUE, issue.id, issue.number))
            stats.issues_embedded += 1
        elif plan.issues.pop(issue.id, None) is not None:
            stats.issues_deleted += 1

    for pr in pull_requests:
        content_hash = hash_pull_request(pr)
        existing = plan.pull_requests.get(pr.id)
        if not pr.is_open:
            if plan.pull_requests.pop(pr.id, None) is not None:
                stats.pull_requests_deleted += 1
            continue
        if existing is not None and existing.hash == content_hash:
            plan.pull_requests[pr.id] = existing.model_copy(update={"state": "open"})
            stats.pull_requests_reused += 1
            continue
        plan.texts.append(prep_pull_request(pr))
        plan.targets.append(EmbeddingTarget(KIND_PULL_REQUEST, pr.id, pr.number, content_hash))
        stats.pull_requests_embedded += 1

    return plan


def apply_merge(plan: MergePlan, vectors: list[list[float]], *, synced_at: int) -> VectorObject:
    if len(vectors) != len(plan.targets):
        raise MergeError(f"expected {len(plan.targets)} vectors, got {len(vectors)}")

    issues = dict(plan.issues)
    pull_requests = dict(plan.pull_requests)
    for target, vector in zip(plan.targets, vectors):
        if target.kind == KIND_ISSUE:
            issues[target.id] = ItemVector(id=target.id, number=target.number, state="open", vector=vector)
        else:
            pull_requests[target.id] = PullRequestVector(
                id=target.id,
                number=target.number,
                state="open",
                vector=vector,
                hash=target.hash or "",
            )

    return VectorObject(repo=plan.repo, synced_at=synced_at, issues=issues, pull_requests=pull_requests)
