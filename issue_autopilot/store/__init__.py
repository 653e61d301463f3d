"""
Versioned content stores the engine writes to.

- base: ContentStore interface, FileVersion, CommitRef
- memory: InMemoryContentStore (tests, local runs)
- GitHubContentStore lives with the other GitHub calls in
  ``issue_autopilot.integrations.github``
"""

from .base import CommitRef, ContentStore, FileVersion
from .memory import InMemoryContentStore

__all__ = [
    "CommitRef",
    "ContentStore",
    "FileVersion",
    "InMemoryContentStore",
]
