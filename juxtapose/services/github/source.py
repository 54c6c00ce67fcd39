from __future__ import annotations

import logging
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Callable

import httpx

from juxtapose.clients.github_client import ISSUES_QUERY, PULL_REQUESTS_QUERY, GitHubClient, GitHubGraphQLError
from juxtapose.core.errors import ErrorKind, SyncError
from juxtapose.core.logging import log_event
from juxtapose.services.github.base import FetchResult, FetchWindow, Issue, PullRequest


class _RepositoryMissing(LookupError):
    pass


def _load_settings() -> Any:
    try:
        from juxtapose.core.config import settings

        return settings
    except Exception:  # noqa: BLE001
        return SimpleNamespace(
            GITHUB_GRAPHQL_URL="https://api.github.com/graphql",
            GITHUB_TOKEN="",
            GITHUB_REQUEST_TIMEOUT_SECONDS=30,
            GITHUB_PAGE_SIZE=100,
            GITHUB_PR_FILES_LIMIT=100,
        )


def _iso_from_ms(value: int) -> str:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _ms_from_iso(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp() * 1000)
    except ValueError:
        return None


def _parse_issue(node: dict[str, Any]) -> Issue:
    return Issue(
        id=str(node["id"]),
        number=int(node["number"]),
        title=str(node.get("title") or ""),
        body_text=str(node.get("bodyText") or ""),
        state=str(node.get("state") or "OPEN"),
    )


def _parse_pull_request(node: dict[str, Any]) -> PullRequest:
    files = node.get("files") if isinstance(node.get("files"), dict) else {}
    paths = tuple(str(entry.get("path")) for entry in (files.get("nodes") or []) if entry and entry.get("path"))
    return PullRequest(
        id=str(node["id"]),
        number=int(node["number"]),
        title=str(node.get("title") or ""),
        body_text=str(node.get("bodyText") or ""),
        state=str(node.get("state") or "OPEN"),
        file_paths=paths,
        merged_at=node.get("mergedAt"),
        updated_at=node.get("updatedAt"),
    )


class GitHubSource:
    """Fetches issues and pull requests for one repository, page by page."""

    def __init__(self, client: GitHubClient | None = None, page_size: int | None = None, files_limit: int | None = None) -> None:
        cfg = _load_settings()
        self.client = client or GitHubClient(
            graphql_url=cfg.GITHUB_GRAPHQL_URL,
            token=cfg.GITHUB_TOKEN,
            timeout_seconds=cfg.GITHUB_REQUEST_TIMEOUT_SECONDS,
        )
        self.page_size = page_size or cfg.GITHUB_PAGE_SIZE
        self.files_limit = files_limit or cfg.GITHUB_PR_FILES_LIMIT

    def fetch(self, window: FetchWindow) -> FetchResult:
        try:
            issues, issue_pages = self._fetch_issues(window)
            pull_requests, pr_pages = self._fetch_pull_requests(window)
        except _RepositoryMissing:
            return FetchResult(
                error=SyncError(ErrorKind.FETCH, "GITHUB_REPOSITORY_NOT_FOUND", f"repository {window.full_name} not found")
            )
        except GitHubGraphQLError as exc:
            code = "GITHUB_REPOSITORY_NOT_FOUND" if exc.error_type == "NOT_FOUND" else "GITHUB_GRAPHQL_ERROR"
            return FetchResult(error=SyncError(ErrorKind.FETCH, code, str(exc), retryable=exc.error_type == "RATE_LIMITED"))
        except httpx.HTTPError as exc:
            return FetchResult(error=SyncError(ErrorKind.FETCH, "GITHUB_FETCH_FAILED", str(exc), retryable=True))
        except (KeyError, TypeError, ValueError) as exc:
            return FetchResult(error=SyncError(ErrorKind.FETCH, "GITHUB_FETCH_FAILED", f"malformed response: {exc}"))

        return FetchResult(issues=issues, pull_requests=pull_requests, pages_fetched=issue_pages + pr_pages)

    def _paginate(
        self,
        query: str,
        variables: dict[str, Any],
        connection: str,
        stop_after: Callable[[list[dict[str, Any]]], bool] | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        nodes: list[dict[str, Any]] = []
        cursor: str | None = None
        pages = 0
        while True:
            data = self.client.query(query, {**variables, "first": self.page_size, "after": cursor})
            repository = data.get("repository")
            if repository is None:
                raise _RepositoryMissing(variables["owner"] + "/" + variables["repo"])
            page = repository[connection]
            page_nodes = [node for node in page.get("nodes") or [] if node]
            nodes.extend(page_nodes)
            pages += 1
            page_info = page.get("pageInfo") or {}
            log_event(
                "github_page_fetched",
                level=logging.DEBUG,
                payload={"connection": connection, "page": pages, "nodes": len(page_nodes)},
            )
            if not page_info.get("hasNextPage"):
                break
            if stop_after is not None and stop_after(page_nodes):
                break
            next_cursor = page_info.get("endCursor")
            if not next_cursor or next_cursor == cursor:
                raise ValueError(f"{connection}.pageInfo has hasNextPage without a new endCursor")
            cursor = next_cursor
        return nodes, pages

    def _fetch_issues(self, window: FetchWindow) -> tuple[list[Issue], int]:
        variables: dict[str, Any] = {"owner": window.owner, "repo": window.repo}
        if window.incremental:
            variables["states"] = ["OPEN", "CLOSED"]
            variables["since"] = _iso_from_ms(int(window.since or 0))
        else:
            variables["states"] = ["OPEN"]
            variables["since"] = None
        nodes, pages = self._paginate(ISSUES_QUERY, variables, "issues")
        return [_parse_issue(node) for node in nodes], pages

    def _fetch_pull_requests(self, window: FetchWindow) -> tuple[list[PullRequest], int]:
        variables: dict[str, Any] = {"owner": window.owner, "repo": window.repo, "filesFirst": self.files_limit}
        if not window.incremental:
            variables["states"] = ["OPEN"]
            nodes, pages = self._paginate(PULL_REQUESTS_QUERY, variables, "pullRequests")
            return [_parse_pull_request(node) for node in nodes], pages

        since = int(window.since or 0)

        def updated_since(node: dict[str, Any]) -> bool:
            updated = _ms_from_iso(node.get("updatedAt"))
            return updated is None or updated >= since

        # Ordered by UPDATED_AT DESC: once a page ends before the watermark, later pages are older still.
        def page_exhausted(page_nodes: list[dict[str, Any]]) -> bool:
            return bool(page_nodes) and not updated_since(page_nodes[-1])

        variables["states"] = ["OPEN", "CLOSED", "MERGED"]
        nodes, pages = self._paginate(PULL_REQUESTS_QUERY, variables, "pullRequests", stop_after=page_exhausted)
        return [_parse_pull_request(node) for node in nodes if updated_since(node)], pages
