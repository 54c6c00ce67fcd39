from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

ISSUES_QUERY = """
query ($owner: String!, $repo: String!, $first: Int!, $after: String, $states: [IssueState!], $since: DateTime) {
  repository(owner: $owner, name: $repo) {
    issues(first: $first, after: $after, filterBy: { states: $states, since: $since }) {
      nodes {
        id
        number
        title
        bodyText
        state
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""

PULL_REQUESTS_QUERY = """
query (
  $owner: String!
  $repo: String!
  $first: Int!
  $after: String
  $states: [PullRequestState!]
  $filesFirst: Int!
) {
  repository(owner: $owner, name: $repo) {
    pullRequests(first: $first, after: $after, states: $states, orderBy: { field: UPDATED_AT, direction: DESC }) {
      nodes {
        id
        number
        title
        bodyText
        state
        mergedAt
        updatedAt
        files(first: $filesFirst) {
          nodes {
            path
          }
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""


class GitHubGraphQLError(RuntimeError):
    def __init__(self, message: str, *, error_type: str | None = None) -> None:
        super().__init__(message)
        self.error_type = error_type


@dataclass
class GitHubClient:
    graphql_url: str
    token: str
    timeout_seconds: int = 30

    def _auth_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        with httpx.Client(timeout=self.timeout_seconds, headers=self._auth_headers()) as client:
            response = client.post(self.graphql_url, json={"query": query, "variables": variables})
            response.raise_for_status()
            payload = response.json()
        errors = payload.get("errors") or []
        if errors:
            first = errors[0] if isinstance(errors[0], dict) else {}
            raise GitHubGraphQLError(str(first.get("message") or errors[0]), error_type=first.get("type"))
        return payload.get("data") or {}
