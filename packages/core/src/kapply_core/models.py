"""Data models shared by the sync, rollout and issue-management layers."""

from __future__ import annotations

from dataclasses import dataclass, field

PENDING = "Pending"
IN_PROGRESS = "In Progress"
COMPLETE = "Complete"

DONE_ICON = "![done](https://material.io/tools/icons/static/icons/twotone-done-24px.svg)"
IN_PROGRESS_ICON = "![inprogress](https://material.io/tools/icons/static/icons/twotone-cached-24px.svg)"

DEFAULT_NAMESPACE = "default"


@dataclass(frozen=True)
class RepoRef:
    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class MatchCriteria:
    """Filters deciding which issues or pull requests qualify for a rollout.

    Every non-empty field must match. An empty field is a wildcard.
    """

    labels: list[str] = field(default_factory=list)
    assignee: str = ""
    milestone: str = ""
    state: str = ""


@dataclass
class IssueActions:
    """Label, assignee and state edits applied to an issue around a rollout."""

    add_labels: list[str] = field(default_factory=list)
    add_assignees: list[str] = field(default_factory=list)
    remove_labels: list[str] = field(default_factory=list)
    remove_assignees: list[str] = field(default_factory=list)
    set_state: str = ""


@dataclass
class TrackedState:
    """What was last synced. The commit is the only identity used for change detection."""

    issue: object = None
    pull_request: object = None
    commit: str = ""

    @property
    def issue_number(self) -> int | None:
        return self.issue.number if self.issue is not None else None


@dataclass(frozen=True)
class NamespacedName:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class ManifestObject:
    """One decoded document from a rendered manifest stream.

    Instances live for one commit's rollout; the orchestrator mutates them in
    place while polling so the status history keeps accumulating.
    """

    raw: str
    kind: str
    api_version: str
    name: NamespacedName
    apply_status: str = ""
    rollout_status: str = ""
    rollout_status_history: list[str] = field(default_factory=list)
    done: bool = False

    @property
    def group(self) -> str:
        # "apps/v1" -> "apps", core objects ("v1") have no group.
        return self.api_version.rsplit("/", 1)[0] if "/" in self.api_version else ""

    @property
    def display(self) -> str:
        return f"`{self.kind}` **{self.name}**"


@dataclass
class Rollout:
    """The objects rendered from one target path and their collective progress."""

    path: str
    status: str = PENDING
    icon: str = ""
    objects: list[ManifestObject] = field(default_factory=list)

    def mark(self, status: str) -> None:
        self.status = status
        self.icon = {COMPLETE: DONE_ICON, IN_PROGRESS: IN_PROGRESS_ICON}.get(status, "")


@dataclass
class RolloutSet:
    """All rollouts of one commit; this is what gets rendered into the progress comment."""

    name: str
    status: str = IN_PROGRESS
    icon: str = IN_PROGRESS_ICON
    rollouts: list[Rollout] = field(default_factory=list)

    def mark(self, status: str) -> None:
        self.status = status
        self.icon = {COMPLETE: DONE_ICON, IN_PROGRESS: IN_PROGRESS_ICON}.get(status, "")


@dataclass
class StatusReporter:
    """A label-driven facet of "is this change fully done".

    Only the label sets are configuration; status, icon and done are
    recomputed from the tracking issue's labels on every cycle.
    """

    name: str
    in_progress_labels: list[str] = field(default_factory=list)
    complete_labels: list[str] = field(default_factory=list)
    wait_for: list[str] = field(default_factory=list)
    status: str = PENDING
    icon: str = ""
    done: bool = False
