"""
Prompt context for the reasoning service.

The context carries the issue title, body and comments, plus the current
content of every repository file the conversation mentions (up to a limit,
each truncated).
"""
from __future__ import annotations

import re
from typing import Callable, List, Optional

import structlog

from ..schemas.work_item import WorkItem

logger = structlog.get_logger()

SYSTEM_PROMPT = """\
You are a GitHub automation agent for the repository {owner}/{repo}.
Rules:
- Read the TITLE, DESCRIPTION and COMMENTS.
- For update_file, always provide the COMPLETE resulting content (never a diff).
- Answer with valid JSON only, following the schema below.
Schema:
{{
  "issue_number": number,
  "tasks_summary": string[],
  "actions": [
    {{
      "type": "create_file" | "update_file" | "delete_file",
      "path": "string",
      "content": "string (required for create/update)",
      "description": "string"
    }}
  ],
  "final_comment": "string (markdown)",
  "close_issue": boolean,
  "state_reason": "completed" | "not_planned"
}}
Limits:
- At most {max_actions} actions.
- Stay inside the project (relative paths under the repository root).
- For HTML/CSS/JS, produce working, self-contained files when possible.
"""

_MENTIONED_FILE = re.compile(
    r"([\w\-./]+?\.(?:html|css|js|json|md|txt|py|java|cpp|c|h|php|rb|go|rs|ts"
    r"|jsx|tsx|vue|xml|yaml|yml))\b",
    re.IGNORECASE,
)

ReadFile = Callable[[str], Optional[str]]


def system_prompt(owner: str, repo: str, max_actions: int) -> str:
    return SYSTEM_PROMPT.format(owner=owner, repo=repo, max_actions=max_actions)


def extract_mentioned_files(text: str) -> List[str]:
    """File paths mentioned in ``text``, de-duplicated, in order of appearance."""
    seen: List[str] = []
    for match in _MENTIONED_FILE.finditer(text or ""):
        path = match.group(1)
        if path not in seen:
            seen.append(path)
    return seen


def build_issue_context(
    item: WorkItem,
    read_file: ReadFile,
    max_files: int = 15,
    max_bytes: int = 200_000,
) -> str:
    """Render the work item and its mentioned files for the prompt.

    Args:
        item: Work item, with comments attached
        read_file: Returns a file's content, or None if unavailable
        max_files: Maximum number of mentioned files to include
        max_bytes: Per-file truncation limit (UTF-8 bytes)
    """
    comments = "\n".join(f"{c.author}: {c.body}" for c in item.comments)
    mentioned = extract_mentioned_files(f"{item.title}\n{item.body}\n{comments}")
    mentioned = mentioned[:max_files]

    context = (
        f"ISSUE #{item.number}\n"
        f"TITLE: {item.title}\n"
        f"DESCRIPTION:\n{item.body}\n\n"
        f"COMMENTS:\n{comments}\n"
    )

    if mentioned:
        context += f"\nMENTIONED FILES ({len(mentioned)}):\n"
        for path in mentioned:
            try:
                content = read_file(path)
            except Exception as e:
                logger.warning("context_file_unreadable", path=path, error=str(e))
                continue
            if not content:
                continue
            truncated = content.encode("utf-8")[:max_bytes].decode("utf-8", "ignore")
            context += f"\n--- BEGIN {path} ---\n{truncated}\n--- END {path} ---\n"

    return context


def build_user_prompt(context: str) -> str:
    return f"{context}\n\nProduce the action plan JSON following the schema."
