"""Parsers for the control data kapply embeds in free text.

Two formats are an external contract and must not change:

- tracking issue bodies start with ``[pull-request]: #<N>`` and
  ``[commit]: <hash>`` on consecutive lines;
- ``git log --merges --pretty=oneline`` lines of the form
  ``<hash> Merge pull request #<N> from <branch>``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from kapply_core.errors import MalformedIssueBodyError

_ROLLOUT_MARKER_RE = re.compile(r"\[pull-request\]: #(\d+)\s+\[commit\]: ([a-z0-9]+)\s+")
_MERGE_LOG_RE = re.compile(r"^([a-z0-9]+) .*Merge pull request #(\d+) from ")


@dataclass(frozen=True)
class RolloutMarkers:
    pr_number: int
    commit: str


@dataclass(frozen=True)
class MergeEntry:
    commit: str
    pr_number: int


def parse_rollout_markers(body: str | None, issue_number: int = 0) -> RolloutMarkers:
    """Extract the pull-request number and commit from a tracking issue body.

    Raises MalformedIssueBodyError when the marker pair is missing.
    """
    match = _ROLLOUT_MARKER_RE.search(body or "")
    if not match:
        raise MalformedIssueBodyError(issue_number, body or "")
    return RolloutMarkers(pr_number=int(match.group(1)), commit=match.group(2))


def render_rollout_markers(pr_number: int, commit: str) -> str:
    return f"[pull-request]: #{pr_number}\n[commit]: {commit}\n"


def parse_merge_log_line(line: str) -> MergeEntry | None:
    """Return the merge commit and PR number for a oneline log entry, or None."""
    match = _MERGE_LOG_RE.match(line)
    if not match:
        return None
    return MergeEntry(commit=match.group(1), pr_number=int(match.group(2)))


def parse_merge_log(output: str) -> list[MergeEntry]:
    """Parse ``git log --merges --pretty=oneline`` output, newest first."""
    entries = []
    for line in output.splitlines():
        entry = parse_merge_log_line(line)
        if entry is not None:
            entries.append(entry)
    return entries
