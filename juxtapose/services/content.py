import hashlib

from juxtapose.services.github.base import Issue, PullRequest


def prep_issue(issue: Issue) -> str:
    return issue.title + "\n\n" + issue.body_text


def prep_pull_request(pull_request: PullRequest) -> str:
    # File order is positional: the same set in another order is different content.
    return pull_request.title + "\n\n" + pull_request.body_text + "\n\n" + "\n".join(pull_request.file_paths)


def hash_pull_request(pull_request: PullRequest) -> str:
    return hashlib.sha256(prep_pull_request(pull_request).encode("utf-8")).hexdigest()
