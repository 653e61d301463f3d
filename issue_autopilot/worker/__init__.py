"""
Issue worker - turns open issues into executed plans.

Usage:
    issue-autopilot poll

Components:
    - pipeline: IssuePipeline, one work item end to end
    - context: prompt context and system prompt for the reasoning service
    - loop: PollingLoop, feeds open issues to the pipeline
"""

from .context import build_issue_context, extract_mentioned_files, system_prompt
from .loop import PollingLoop, run_worker
from .pipeline import IssuePipeline

__all__ = [
    "IssuePipeline",
    "PollingLoop",
    "build_issue_context",
    "extract_mentioned_files",
    "run_worker",
    "system_prompt",
]
