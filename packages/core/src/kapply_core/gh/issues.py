from __future__ import annotations

import logging

from github import Github

from kapply_core.models import MatchCriteria

logger = logging.getLogger(__name__)

CLOSED = "closed"
OPEN = "open"


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_issue(repo, number: int):
    return repo.get_issue(number)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def find_milestone(repo, title: str):
    """Return the milestone with the given title, or None."""
    for milestone in repo.get_milestones(state="all"):
        if milestone.title == title:
            return milestone
    return None


def iter_issues(repo, criteria: MatchCriteria, labels: list[str] | None = None, state: str | None = None):
    """Iterate issues matching ``criteria``, newest first.

    ``labels`` and ``state`` replace the criteria's own values when given.
    Filtering happens server side and pages are fetched only as the caller
    advances; an unknown milestone matches nothing.
    """
    kwargs = {"sort": "created", "direction": "desc"}
    labels = criteria.labels if labels is None else labels
    state = state or criteria.state
    if labels:
        kwargs["labels"] = list(labels)
    if state:
        kwargs["state"] = state
    if criteria.assignee:
        kwargs["assignee"] = criteria.assignee
    if criteria.milestone:
        milestone = find_milestone(repo, criteria.milestone)
        if milestone is None:
            logger.info("milestone %r not found in %s", criteria.milestone, repo.full_name)
            return iter(())
        kwargs["milestone"] = milestone
    return iter(repo.get_issues(**kwargs))


def newest_issue(repo, criteria: MatchCriteria):
    """Return the most recently created issue matching ``criteria``, or None."""
    return next(iter_issues(repo, criteria), None)


def label_names(issue) -> set[str]:
    return {label.name for label in issue.labels}


def is_pull_request(issue) -> bool:
    return issue.pull_request is not None


def add_labels(issue, labels: list[str]) -> None:
    issue.add_to_labels(*labels)


def remove_labels(issue, labels: list[str]) -> None:
    for label in labels:
        issue.remove_from_labels(label)


def add_assignees(issue, assignees: list[str]) -> None:
    issue.add_to_assignees(*assignees)


def remove_assignees(issue, assignees: list[str]) -> None:
    if assignees:
        issue.remove_from_assignees(*assignees)


def set_issue_state(issue, state: str) -> None:
    issue.edit(state=state)


def comment_prefix(name: str) -> str:
    return f"[rollout]: {name}"


def get_or_create_comment(issue, name: str, user: str):
    """Return the progress comment ``user`` left for rollout ``name``, creating it if absent."""
    expected = comment_prefix(name)
    for comment in issue.get_comments():
        made_by_us = comment.user is not None and comment.user.login == user
        if made_by_us and (comment.body or "").startswith(expected):
            return comment
    logger.info("creating progress comment %r on issue #%d", expected, issue.number)
    return issue.create_comment(expected)


def update_comment(comment, name: str, body: str):
    """Overwrite the comment body, keeping the rollout prefix as its first line."""
    expected = comment_prefix(name)
    if not body.startswith(expected):
        body = f"{expected}\n\n{body}"
    comment.edit(body)
    return comment
