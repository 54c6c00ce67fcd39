import hashlib

from juxtapose.services.content import hash_pull_request, prep_issue, prep_pull_request
from juxtapose.services.github.base import Issue, PullRequest


def _pr(**overrides):
    fields = {
        "id": "PR_1",
        "number": 7,
        "title": "Add retries",
        "body_text": "Retries failed uploads",
        "state": "OPEN",
        "file_paths": ("src/upload.py", "tests/test_upload.py"),
    }
    fields.update(overrides)
    return PullRequest(**fields)


def test_prep_issue_joins_title_and_body():
    issue = Issue(id="I_1", number=1, title="Crash on start", body_text="Stack trace attached", state="OPEN")
    assert prep_issue(issue) == "Crash on start\n\nStack trace attached"


def test_prep_issue_keeps_separator_for_empty_body():
    issue = Issue(id="I_1", number=1, title="Crash", body_text="", state="OPEN")
    assert prep_issue(issue) == "Crash\n\n"


def test_prep_pull_request_appends_file_paths_one_per_line():
    assert prep_pull_request(_pr()) == "Add retries\n\nRetries failed uploads\n\nsrc/upload.py\ntests/test_upload.py"


def test_prep_pull_request_without_files_ends_with_separator():
    assert prep_pull_request(_pr(file_paths=())) == "Add retries\n\nRetries failed uploads\n\n"


def test_hash_is_sha256_hex_of_prepared_text():
    pr = _pr()
    expected = hashlib.sha256(prep_pull_request(pr).encode("utf-8")).hexdigest()
    assert hash_pull_request(pr) == expected
    assert len(hash_pull_request(pr)) == 64


def test_hash_is_stable_for_identical_content():
    assert hash_pull_request(_pr()) == hash_pull_request(_pr(id="PR_other", number=99))


def test_hash_changes_with_title_body_or_files():
    base = hash_pull_request(_pr())
    assert hash_pull_request(_pr(title="Add retry")) != base
    assert hash_pull_request(_pr(body_text="")) != base
    assert hash_pull_request(_pr(file_paths=("src/upload.py",))) != base


def test_hash_depends_on_file_order():
    reordered = _pr(file_paths=("tests/test_upload.py", "src/upload.py"))
    assert hash_pull_request(reordered) != hash_pull_request(_pr())


def test_hash_handles_non_ascii_text():
    pr = _pr(title="Исправить кодировку ✓")
    assert hash_pull_request(pr) == hashlib.sha256(prep_pull_request(pr).encode("utf-8")).hexdigest()
