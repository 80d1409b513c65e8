"""Deciding whether there is a new commit to roll out.

Two matching modes:

- ``pr``: scan the merge log of the working copy, newest first, and take the
  first merged pull request whose issue satisfies the match criteria.
- ``issue``: take the newest issue matching the criteria and read the
  pull request and commit it points at from its body markers.
"""

from __future__ import annotations

import logging

from kapply_core.errors import ConfigError, NoMatchError
from kapply_core.gh.issues import CLOSED, get_issue, get_pull, label_names, newest_issue
from kapply_core.markers import parse_merge_log, parse_rollout_markers
from kapply_core.models import MatchCriteria, TrackedState

logger = logging.getLogger(__name__)

PR_MODE = "pr"
ISSUE_MODE = "issue"
SYNC_MODES = (PR_MODE, ISSUE_MODE)


def matches_criteria(issue, criteria: MatchCriteria) -> bool:
    """Apply the criteria to one issue: labels, assignee, milestone, then state."""
    if criteria.labels:
        present = label_names(issue)
        for label in criteria.labels:
            if label not in present:
                logger.info("label %s missing from %s on #%d", label, sorted(present), issue.number)
                return False
    if criteria.assignee:
        if not any(a.login == criteria.assignee for a in issue.assignees):
            logger.info("assignee %s not found on #%d", criteria.assignee, issue.number)
            return False
    if criteria.milestone:
        title = issue.milestone.title if issue.milestone is not None else ""
        if title != criteria.milestone:
            logger.info("milestone %r does not match on #%d", title, issue.number)
            return False
    if criteria.state:
        if issue.state != criteria.state and criteria.state != "all":
            logger.info("state %s does not match on #%d", issue.state, issue.number)
            return False
    return True


class SourceSync:
    """Tracks the newest qualifying pull request and its merge commit.

    ``sync()`` returns True when a new commit was adopted and False when the
    tracked one is still current. Lookup failures raise; callers are expected
    to log, back off and call again.
    """

    def __init__(
        self,
        repo,
        working_copy,
        criteria: MatchCriteria | None = None,
        mode: str = ISSUE_MODE,
        branch: str = "master",
        state: TrackedState | None = None,
    ):
        mode = (mode or ISSUE_MODE).strip().lower()
        if mode not in SYNC_MODES:
            raise ConfigError(f"Unknown sync type: {mode!r}. Choose 'issue' or 'pr'.")
        self.repo = repo
        self.working_copy = working_copy
        self.criteria = criteria or MatchCriteria()
        self.mode = mode
        self.branch = branch
        self.state = state or TrackedState()

    def sync(self) -> bool:
        if self.mode == PR_MODE:
            return self.sync_prs()
        return self.sync_issues()

    def sync_prs(self) -> bool:
        """Scan merge commits newest first for a qualifying pull request."""
        log = self.working_copy.merge_log(self.branch)
        for entry in parse_merge_log(log):
            if entry.commit == self.state.commit:
                return False

            logger.info("found commit %s for PR #%d", entry.commit, entry.pr_number)
            issue = get_issue(self.repo, entry.pr_number)
            if not matches_criteria(issue, self.criteria):
                continue

            pull = get_pull(self.repo, entry.pr_number)
            self.state = TrackedState(issue=issue, pull_request=pull, commit=entry.commit)
            return True
        raise NoMatchError("no matching PRs found")

    def sync_issues(self) -> bool:
        """Adopt the newest matching issue and the pull request/commit its body names."""
        newest = newest_issue(self.repo, self.criteria)
        if newest is None:
            raise NoMatchError("no matching issues found")
        logger.info("newest matching issue is #%d", newest.number)

        current = self.state.issue
        if current is not None and current.id == newest.id:
            logger.info("current issue #%d unchanged", current.number)
            # Keep the tracked copy fresh so a close is noticed below.
            self.state.issue = newest
            changed = False
        else:
            logger.info("syncing issue #%d", newest.number)
            # Adopted before parsing: a malformed issue is reported once and then
            # treated as current, so the loop does not fail on it every cycle.
            self.state.issue = newest
            markers = parse_rollout_markers(newest.body, newest.number)
            self.state.pull_request = get_pull(self.repo, markers.pr_number)
            self.state.commit = markers.commit
            logger.info("syncing commit %s", markers.commit)
            changed = True

        if self.state.issue.state == CLOSED:
            return False
        return changed
