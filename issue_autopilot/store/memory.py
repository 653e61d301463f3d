"""
In-memory content store.

Implements the full ContentStore contract, including optimistic concurrency:
every successful write mints a new token, even when the content is
unchanged. ``calls`` records every operation issued, in order.
"""
from __future__ import annotations

import hashlib
import threading
from typing import Dict, List, Optional, Tuple

from ..errors import ConflictError, TransportError
from .base import CommitRef, ContentStore, FileVersion


class InMemoryContentStore(ContentStore):
    """Branch-aware, thread-safe store kept in process memory.

    Structure:
        branches[branch][path] = (content, sha)
    """

    def __init__(
        self,
        files: Optional[Dict[str, str]] = None,
        default_branch: str = "main",
    ):
        self.branches: Dict[str, Dict[str, Tuple[str, str]]] = {default_branch: {}}
        self.commits: List[Tuple[str, str, str]] = []
        self.merge_requests: List[Dict[str, str]] = []
        self.calls: List[Tuple[str, ...]] = []
        self._counter = 0
        self._lock = threading.Lock()
        for path, content in (files or {}).items():
            self.branches[default_branch][path] = (content, self._mint(content))

    def _mint(self, content: str) -> str:
        self._counter += 1
        return hashlib.sha1(f"{self._counter}:{content}".encode("utf-8")).hexdigest()

    def _files(self, branch: str) -> Dict[str, Tuple[str, str]]:
        try:
            return self.branches[branch]
        except KeyError:
            raise TransportError(f"No such branch: {branch}", status_code=404) from None

    def _commit(self, branch: str, message: str) -> CommitRef:
        sha = self._mint(message)
        self.commits.append((branch, sha, message))
        return CommitRef(sha=sha, url=f"memory://commit/{sha}")

    def read(self, path: str, *, branch: str) -> Optional[FileVersion]:
        with self._lock:
            self.calls.append(("read", branch, path))
            entry = self._files(branch).get(path)
            if entry is None:
                return None
            return FileVersion(path=path, content=entry[0], sha=entry[1])

    def write(
        self,
        path: str,
        content: str,
        message: str,
        *,
        branch: str,
        expected_sha: Optional[str] = None,
    ) -> CommitRef:
        with self._lock:
            self.calls.append(("write", branch, path))
            files = self._files(branch)
            current = files.get(path)
            if expected_sha is None and current is not None:
                raise ConflictError(f"{path} already exists; sha required", status_code=422)
            if expected_sha is not None and (current is None or current[1] != expected_sha):
                raise ConflictError(f"{path} does not match {expected_sha}")
            files[path] = (content, self._mint(content))
            return self._commit(branch, message)

    def delete(
        self, path: str, message: str, *, branch: str, expected_sha: str
    ) -> CommitRef:
        with self._lock:
            self.calls.append(("delete", branch, path))
            files = self._files(branch)
            current = files.get(path)
            if current is None or current[1] != expected_sha:
                raise ConflictError(f"{path} does not match {expected_sha}")
            del files[path]
            return self._commit(branch, message)

    def ensure_branch(self, branch: str, *, base: str) -> bool:
        with self._lock:
            self.calls.append(("ensure_branch", branch, base))
            if branch in self.branches:
                return False
            self.branches[branch] = dict(self._files(base))
            return True

    def open_merge_request(
        self, *, head: str, base: str, title: str, body: str
    ) -> str:
        with self._lock:
            self.calls.append(("open_merge_request", head, base))
            self._files(head)
            self.merge_requests.append(
                {"head": head, "base": base, "title": title, "body": body}
            )
            return f"memory://merge/{len(self.merge_requests)}"

    def get_content(self, path: str, branch: str = "main") -> Optional[str]:
        """Current content of ``path`` without recording a call."""
        entry = self.branches.get(branch, {}).get(path)
        return entry[0] if entry else None
