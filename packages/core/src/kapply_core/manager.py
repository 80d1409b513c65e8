"""Maintaining one tracking issue per merged pull request.

Each cycle finds the newest qualifying merged PR, makes sure exactly one open
issue carrying the tracking label points at it (closing stale ones, creating
it when missing), then rolls the label-driven status reporters up into the
issue body and its open/closed state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from github import GithubException

from kapply_core.errors import KapplyError, MalformedIssueBodyError
from kapply_core.gh.issues import CLOSED, OPEN, get_issue, is_pull_request, iter_issues, label_names
from kapply_core.markers import parse_rollout_markers
from kapply_core.models import (
    COMPLETE,
    DONE_ICON,
    IN_PROGRESS,
    IN_PROGRESS_ICON,
    PENDING,
    IssueActions,
    MatchCriteria,
    StatusReporter,
)
from kapply_core.poll import PollLoop
from kapply_core.templates import render_tracking_issue_body

logger = logging.getLogger(__name__)


@dataclass
class ManagerSettings:
    user: str
    label: str
    open_issue: MatchCriteria = field(default_factory=MatchCriteria)
    open_actions: IssueActions = field(default_factory=IssueActions)
    reporters: list[StatusReporter] = field(default_factory=list)
    interval: float = 30.0


def _has_all(labels: set[str], wanted: list[str]) -> bool:
    # An unconfigured label set never matches.
    return bool(wanted) and set(wanted) <= labels


def evaluate_reporter(reporter: StatusReporter, labels: set[str]) -> str:
    """Recompute a reporter's phase from the issue labels and return the issue state it implies."""
    if _has_all(labels, reporter.complete_labels):
        reporter.status, reporter.done, reporter.icon = COMPLETE, True, DONE_ICON
        return CLOSED
    if _has_all(labels, reporter.in_progress_labels):
        reporter.status, reporter.done, reporter.icon = IN_PROGRESS, False, IN_PROGRESS_ICON
        return OPEN
    reporter.status, reporter.done, reporter.icon = PENDING, False, ""
    return OPEN


def compute_issue_state(reporters: list[StatusReporter], labels: set[str]) -> str | None:
    """Evaluate every reporter in order; the issue state comes from the last one.

    With reporters A then B the issue closes when B completes, even if A has
    not. Returns None when no reporters are configured.
    """
    state = None
    for reporter in reporters:
        state = evaluate_reporter(reporter, labels)
        logger.info("%s %s", reporter.name, reporter.status)
    return state


class IssueStatusAggregator:
    """Runs the tracking-issue loop.

    ``source_sync`` must be a PR-mode SourceSync sharing ``repo``.
    """

    def __init__(
        self,
        repo,
        source_sync,
        settings: ManagerSettings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.repo = repo
        self.source_sync = source_sync
        self.settings = settings
        self.sleep = sleep
        self.issue = None

    @property
    def pull_request(self):
        return self.source_sync.state.pull_request

    @property
    def commit(self) -> str:
        return self.source_sync.state.commit

    def run(self, max_cycles: int | None = None) -> None:
        """Loop forever (or ``max_cycles`` times). Cycle errors are logged and retried."""
        self.source_sync.working_copy.clone()
        PollLoop(self.cycle, self.settings.interval, sleep=self.sleep, name="issue manager").run(max_cycles)

    def cycle(self) -> bool:
        self.sync_to_pr_and_issue()
        self.update_issue_status()
        return False

    def wait_for_pull_request(self) -> None:
        """Block until the source sync tracks a qualifying merged PR."""

        def synced() -> bool:
            self.source_sync.sync()
            return self.source_sync.state.pull_request is not None

        PollLoop(synced, self.settings.interval, sleep=self.sleep, name="pr sync").run()

    def _close(self, issue) -> None:
        if issue.state == CLOSED:
            return
        try:
            issue.edit(state=CLOSED)
        except GithubException as e:
            logger.warning("could not close issue #%d: %s", issue.number, e)

    def _find_candidate(self, criteria: MatchCriteria):
        """Return the newest tracking issue whose body carries markers, or None.

        The label listing includes closed issues, so it is only read as far as
        the candidate.
        """
        for issue in iter_issues(self.repo, criteria, labels=[self.settings.label], state="all"):
            if is_pull_request(issue):
                continue
            try:
                return issue, parse_rollout_markers(issue.body, issue.number)
            except MalformedIssueBodyError as e:
                logger.warning("%s", e)
        return None, None

    def sync_to_pr_and_issue(self) -> None:
        """Adopt the tracking issue for the current PR, closing stale ones and creating it if needed."""
        self.issue = None
        self.wait_for_pull_request()
        pr_number = self.pull_request.number

        open_issue = self.settings.open_issue
        criteria = MatchCriteria(assignee=open_issue.assignee, milestone=open_issue.milestone)

        logger.info("checking issues labeled %s", self.settings.label)
        candidate, markers = self._find_candidate(criteria)
        if candidate is not None:
            # Only one tracking issue may be live per label.
            for issue in iter_issues(self.repo, criteria, labels=[self.settings.label], state=OPEN):
                if not is_pull_request(issue) and issue.number < candidate.number:
                    self._close(issue)

            if markers.pr_number != pr_number:
                logger.info("issue #%d tracks PR #%d, not #%d", candidate.number, markers.pr_number, pr_number)
                self._close(candidate)
            elif markers.commit != self.commit:
                logger.info("issue #%d tracks commit %s, not %s", candidate.number, markers.commit, self.commit)
                self._close(candidate)
            else:
                self.issue = candidate
                logger.info("issue #%d matches PR #%d", candidate.number, pr_number)

        if self.issue is None:
            self.issue = self.create_tracking_issue()

    def create_tracking_issue(self):
        if not self.commit:
            raise KapplyError("no commit for PR")
        pr_number = self.pull_request.number
        for reporter in self.settings.reporters:
            evaluate_reporter(reporter, set())

        kwargs = {
            "title": f"Rollout #{pr_number}",
            "body": render_tracking_issue_body(pr_number, self.commit, self.settings.reporters),
            "labels": [*self.settings.open_actions.add_labels, self.settings.label],
        }
        if self.settings.open_actions.add_assignees:
            kwargs["assignees"] = list(self.settings.open_actions.add_assignees)
        issue = self.repo.create_issue(**kwargs)
        logger.info("opened issue #%d for PR #%d", issue.number, pr_number)
        return issue

    def update_issue_status(self) -> None:
        """Recompute reporter phases from the issue's live labels and write body and state back."""
        logger.info("checking issue #%d", self.issue.number)
        self.issue = get_issue(self.repo, self.issue.number)
        state = compute_issue_state(self.settings.reporters, label_names(self.issue))

        body = render_tracking_issue_body(self.pull_request.number, self.commit, self.settings.reporters)
        if state is None:
            self.issue.edit(body=body)
        else:
            self.issue.edit(state=state, body=body)
