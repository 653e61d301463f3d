"""Clients for GitHub (issues + contents) and the Gemini reasoning service."""

from .base import IssueTracker, ReasoningService
from .gemini import GeminiReasoningService
from .github import GitHubClient, GitHubContentStore, GitHubIssueTracker

__all__ = [
    "GeminiReasoningService",
    "GitHubClient",
    "GitHubContentStore",
    "GitHubIssueTracker",
    "IssueTracker",
    "ReasoningService",
]
