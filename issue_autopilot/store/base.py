"""
Content store abstraction.

A content store is a remote, SHA-versioned file tree with named branches.
Every read hands back the path's current version token (sha); writes and
deletes may be made conditional on that token so that a concurrent edit is
rejected with ConflictError instead of being silently overwritten.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FileVersion:
    """A file body together with its version token."""

    path: str
    content: str
    sha: str


@dataclass(frozen=True)
class CommitRef:
    """Commit produced by a write or delete."""

    sha: str
    url: Optional[str] = None

    def __str__(self) -> str:
        return self.url or self.sha


class ContentStore(ABC):
    """Abstract base class for versioned content stores."""

    @abstractmethod
    def read(self, path: str, *, branch: str) -> Optional[FileVersion]:
        """Return the file at ``path`` on ``branch``, or None if absent."""
        pass

    @abstractmethod
    def write(
        self,
        path: str,
        content: str,
        message: str,
        *,
        branch: str,
        expected_sha: Optional[str] = None,
    ) -> CommitRef:
        """Write the complete body of ``path``.

        Without ``expected_sha`` this is an unconditional create. With it,
        the write only succeeds if the path's current token matches.

        Raises:
            ConflictError: the token is stale (or the path exists and no
                token was supplied)
        """
        pass

    @abstractmethod
    def delete(
        self, path: str, message: str, *, branch: str, expected_sha: str
    ) -> CommitRef:
        """Delete ``path`` if its current token matches ``expected_sha``.

        Raises:
            ConflictError: the token is stale or the path is gone
        """
        pass

    @abstractmethod
    def ensure_branch(self, branch: str, *, base: str) -> bool:
        """Create ``branch`` from the tip of ``base`` unless it exists.

        Returns:
            True if the branch was created, False if it already existed
        """
        pass

    @abstractmethod
    def open_merge_request(
        self, *, head: str, base: str, title: str, body: str
    ) -> str:
        """Open a review-gated request to merge ``head`` into ``base``.

        Returns:
            URL (or identifier) of the merge request
        """
        pass
