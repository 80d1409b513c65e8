"""Rolling out one commit: render, apply, wait for convergence, report.

Progress is mirrored into a single comment on the tracking issue. The comment
is pushed after every state change, so it always shows a state the rollout
actually reached, including the last one before a failure.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from github import GithubException

from kapply_core.errors import ApplyError, ConfigError, KapplyError
from kapply_core.gh.issues import (
    add_assignees,
    add_labels,
    get_or_create_comment,
    remove_assignees,
    remove_labels,
    set_issue_state,
    update_comment,
)
from kapply_core.models import COMPLETE, IN_PROGRESS, IssueActions, ManifestObject, Rollout, RolloutSet
from kapply_core.poll import PollLoop
from kapply_core.rollout.manifest import build_rollout
from kapply_core.rollout.status import NOT_APPLICABLE
from kapply_core.templates import history_line, render_rollout_comment

logger = logging.getLogger(__name__)

SEQUENTIAL = "sequential"
PARALLEL = "parallel"
ROLLOUT_TYPES = (SEQUENTIAL, PARALLEL)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ApplySettings:
    name: str
    user: str
    targets: list[str] = field(default_factory=lambda: ["./"])
    rollout_type: str = SEQUENTIAL
    before: IssueActions = field(default_factory=IssueActions)
    after: IssueActions = field(default_factory=IssueActions)
    pause: float = 1.0


def apply_issue_actions(issue, actions: IssueActions) -> None:
    """Apply label/assignee/state edits to an issue.

    Additions and the state change raise on failure. Removals are best effort:
    the label or assignee may simply not be there.
    """
    if actions.add_labels:
        add_labels(issue, actions.add_labels)
    try:
        remove_labels(issue, actions.remove_labels)
    except GithubException as e:
        logger.debug("ignoring failure to remove labels %s from #%d: %s", actions.remove_labels, issue.number, e)

    if actions.add_assignees:
        add_assignees(issue, actions.add_assignees)
    try:
        remove_assignees(issue, actions.remove_assignees)
    except GithubException as e:
        logger.debug(
            "ignoring failure to remove assignees %s from #%d: %s", actions.remove_assignees, issue.number, e
        )

    if actions.set_state:
        set_issue_state(issue, actions.set_state)


class ApplyOrchestrator:
    """Drives one full rollout of a commit.

    Collaborators:
      working_copy: ``sync(commit)``
      renderer: ``render(path) -> str``
      applier: ``apply(document) -> str``, raising ApplyError
      status_engine: ``status_for(kind, name, revision, group) -> (message, done)``
    """

    def __init__(
        self,
        working_copy,
        renderer,
        applier,
        status_engine,
        settings: ApplySettings,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        rollout_type = (settings.rollout_type or SEQUENTIAL).strip().lower()
        if rollout_type not in ROLLOUT_TYPES:
            raise ConfigError(f"Unknown rollout type: {settings.rollout_type!r}. Choose 'sequential' or 'parallel'.")
        self.rollout_type = rollout_type
        self.working_copy = working_copy
        self.renderer = renderer
        self.applier = applier
        self.status_engine = status_engine
        self.settings = settings
        self.sleep = sleep
        self.clock = clock

    def run(self, commit: str, issue, targets: list[str] | None = None) -> RolloutSet:
        """Roll out ``commit``, reporting on ``issue``. Re-running re-applies everything."""
        targets = targets if targets is not None else self.settings.targets

        self.working_copy.sync(commit)
        logger.info("repo synced to %s", commit)

        apply_issue_actions(issue, self.settings.before)

        comment = get_or_create_comment(issue, self.settings.name, self.settings.user)

        ros = RolloutSet(name=self.settings.name)
        for path in targets:
            logger.info("kustomizing %s", path)
            ro = build_rollout(path, self.renderer.render(path))
            logger.info("adding %d items to rollout", len(ro.objects))
            ros.rollouts.append(ro)
        self._push(comment, ros)

        if self.rollout_type == SEQUENTIAL:
            for ro in ros.rollouts:
                self._apply(comment, ros, [ro])
                self._wait(comment, ros, [ro])
        else:
            self._apply(comment, ros, ros.rollouts)
            self._wait(comment, ros, ros.rollouts)

        ros.mark(COMPLETE)
        self._push(comment, ros)

        apply_issue_actions(issue, self.settings.after)
        return ros

    def _push(self, comment, ros: RolloutSet) -> None:
        update_comment(comment, self.settings.name, render_rollout_comment(ros))

    def _push_best_effort(self, comment, ros: RolloutSet) -> None:
        try:
            self._push(comment, ros)
        except GithubException as e:
            logger.error("could not update progress comment: %s", e)

    def _apply(self, comment, ros: RolloutSet, rollouts: list[Rollout]) -> None:
        for ro in rollouts:
            ro.mark(IN_PROGRESS)
            for obj in ro.objects:
                logger.info("applying %s %s", obj.kind, obj.name)
                try:
                    obj.apply_status = self.applier.apply(obj.raw)
                except ApplyError as e:
                    obj.apply_status = e.output.strip()
                    self._push_best_effort(comment, ros)
                    raise
                logger.info("%s", obj.apply_status)
        self._push(comment, ros)

    def _wait(self, comment, ros: RolloutSet, rollouts: list[Rollout]) -> None:
        """Poll every not-yet-done object in ``rollouts`` until all have converged."""

        def check_all() -> bool:
            done = True
            for ro in rollouts:
                ro_done = True
                for obj in ro.objects:
                    if not obj.done:
                        self._check(comment, ros, obj)
                    if not obj.done:
                        done = ro_done = False
                if ro_done and ro.status != COMPLETE:
                    ro.mark(COMPLETE)
                    self._push(comment, ros)
            return done

        # No retryable errors here: a failed status lookup aborts the rollout.
        PollLoop(check_all, self.settings.pause, sleep=self.sleep, retry_on=(), name="rollout status").run()

    def _check(self, comment, ros: RolloutSet, obj: ManifestObject) -> None:
        try:
            status, done = self.status_engine.status_for(obj.kind, obj.name, 0, obj.group)
        except KapplyError as e:
            obj.rollout_status = f"error: {e}"
            self._push_best_effort(comment, ros)
            raise
        status = status.strip()
        obj.done = done
        if status == NOT_APPLICABLE:
            obj.rollout_status = status
            return
        if status != obj.rollout_status:
            logger.info("%s", status)
            obj.rollout_status = status
            obj.rollout_status_history.append(history_line(status, self.clock()))
            self._push(comment, ros)
