"""
Integration with the GitHub REST API.

GitHubClient owns the authenticated httpx client for one repository.
GitHubContentStore implements the ContentStore contract on the contents,
refs and pulls endpoints; GitHubIssueTracker reads issues and comments and
posts reports back.
"""

from __future__ import annotations

import base64
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import structlog

from ..errors import ConflictError, MalformedResponseError, TransportError
from ..schemas.work_item import Comment, WorkItem
from ..store.base import CommitRef, ContentStore, FileVersion
from .base import IssueTracker
from .http import json_body, send

logger = structlog.get_logger()

GITHUB_API_VERSION = "2022-11-28"
PAGE_SIZE = 50

# Raw or JSON-escaped: "sha" wasn't supplied
_SHA_NOT_SUPPLIED = re.compile(r"\\?\"sha\\?\" wasn't supplied")


class GitHubClient:
    """Authenticated client for a single repository."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.owner = owner
        self.repo = repo
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
        )

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    def request(self, method: str, path: str, **kwargs: Any) -> Optional[httpx.Response]:
        return send(self.client, method, f"{self.repo_path}{path}", **kwargs)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()


def _contents_path(path: str) -> str:
    return f"/contents/{quote(path, safe='/')}"


def _commit_ref(data: Dict[str, Any]) -> CommitRef:
    commit = data.get("commit") or {}
    if not commit.get("sha"):
        raise MalformedResponseError("Response carries no commit sha")
    return CommitRef(sha=commit["sha"], url=commit.get("html_url"))


class GitHubContentStore(ContentStore):
    """ContentStore backed by the GitHub contents API."""

    def __init__(self, github: GitHubClient):
        self.github = github

    def read(self, path: str, *, branch: str) -> Optional[FileVersion]:
        response = self.github.request(
            "GET",
            _contents_path(path),
            params={"ref": branch},
            allow_not_found=True,
        )
        if response is None:
            return None
        data = json_body(response)
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise MalformedResponseError(f"{path} is not a file")
        encoded = data.get("content") or ""
        try:
            content = base64.b64decode(encoded).decode("utf-8") if encoded else ""
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedResponseError(f"{path} is not UTF-8 text") from e
        return FileVersion(path=path, content=content, sha=data["sha"])

    def write(
        self,
        path: str,
        content: str,
        message: str,
        *,
        branch: str,
        expected_sha: Optional[str] = None,
    ) -> CommitRef:
        body: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if expected_sha:
            body["sha"] = expected_sha
        try:
            response = self.github.request("PUT", _contents_path(path), json=body)
        except TransportError as e:
            # Creating over an existing file without a sha is a 422, not a 409.
            if e.status_code == 422 and _SHA_NOT_SUPPLIED.search(e.message):
                raise ConflictError(e.message, status_code=422) from e
            raise
        return _commit_ref(json_body(response))

    def delete(
        self, path: str, message: str, *, branch: str, expected_sha: str
    ) -> CommitRef:
        body = {"message": message, "sha": expected_sha, "branch": branch}
        response = self.github.request("DELETE", _contents_path(path), json=body)
        return _commit_ref(json_body(response))

    def ensure_branch(self, branch: str, *, base: str) -> bool:
        existing = self.github.request(
            "GET", f"/git/ref/heads/{quote(branch, safe='/')}", allow_not_found=True
        )
        if existing is not None:
            return False

        base_ref = self.github.request("GET", f"/git/ref/heads/{quote(base, safe='/')}")
        base_sha = (json_body(base_ref).get("object") or {}).get("sha")
        if not base_sha:
            raise MalformedResponseError(f"Branch {base} has no tip sha")

        try:
            self.github.request(
                "POST",
                "/git/refs",
                json={"ref": f"refs/heads/{branch}", "sha": base_sha},
            )
        except TransportError as e:
            # Lost a race with another run creating the same branch.
            if e.status_code == 422 and "already exists" in e.message:
                return False
            raise
        logger.info("branch_created", branch=branch, base=base, sha=base_sha)
        return True

    def open_merge_request(
        self, *, head: str, base: str, title: str, body: str
    ) -> str:
        response = self.github.request(
            "POST",
            "/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )
        data = json_body(response)
        return data.get("html_url") or str(data.get("number", ""))


class GitHubIssueTracker(IssueTracker):
    """IssueTracker backed by the GitHub issues API."""

    def __init__(self, github: GitHubClient):
        self.github = github

    def list_open_issues(self) -> List[WorkItem]:
        response = self.github.request(
            "GET", "/issues", params={"state": "open", "per_page": PAGE_SIZE}
        )
        return [
            WorkItem.from_github(item)
            for item in json_body(response)
            if not item.get("pull_request")
        ]

    def get_issue(self, number: int) -> WorkItem:
        response = self.github.request("GET", f"/issues/{number}")
        return WorkItem.from_github(json_body(response))

    def list_comments(self, number: int) -> List[Comment]:
        response = self.github.request(
            "GET", f"/issues/{number}/comments", params={"per_page": PAGE_SIZE}
        )
        return [Comment.from_github(item) for item in json_body(response)]

    def comment(self, number: int, body: str) -> None:
        self.github.request("POST", f"/issues/{number}/comments", json={"body": body})

    def close(self, number: int, reason: str = "completed") -> None:
        self.github.request(
            "PATCH",
            f"/issues/{number}",
            json={"state": "closed", "state_reason": reason},
        )
