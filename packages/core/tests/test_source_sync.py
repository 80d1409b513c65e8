"""Tests for SourceSync in both matching modes."""

import types
from unittest.mock import MagicMock

import pytest

from kapply_core.errors import ConfigError, MalformedIssueBodyError, NoMatchError
from kapply_core.models import MatchCriteria, TrackedState
from kapply_core.sync import ISSUE_MODE, PR_MODE, SourceSync, matches_criteria

MERGE_LOG = (
    "ccc333 Merge pull request #3 from a/c\n"
    "bbb222 Merge pull request #2 from a/b\n"
    "aaa111 Merge pull request #1 from a/a\n"
)


def _issue(number, labels=(), state="open", body="", assignees=(), milestone=None):
    issue = MagicMock()
    issue.number = number
    issue.id = 1000 + number
    issue.state = state
    issue.body = body
    issue.labels = [types.SimpleNamespace(name=name) for name in labels]
    issue.assignees = [types.SimpleNamespace(login=login) for login in assignees]
    issue.milestone = types.SimpleNamespace(title=milestone) if milestone else None
    return issue


def _pull(number):
    pull = MagicMock()
    pull.number = number
    return pull


@pytest.fixture
def repo():
    r = MagicMock()
    r.full_name = "acme/deploy"
    r.get_pull.side_effect = _pull
    return r


def working_copy(log=MERGE_LOG):
    wc = MagicMock()
    wc.merge_log.return_value = log
    return wc


class TestMatchesCriteria:
    def test_empty_criteria_match_everything(self):
        assert matches_criteria(_issue(1), MatchCriteria())

    def test_labels_must_all_be_present(self):
        issue = _issue(1, labels=["deploy", "prod", "extra"])
        assert matches_criteria(issue, MatchCriteria(labels=["deploy", "prod"]))
        assert not matches_criteria(issue, MatchCriteria(labels=["deploy", "staging"]))

    def test_assignee(self):
        issue = _issue(1, assignees=["alice", "bob"])
        assert matches_criteria(issue, MatchCriteria(assignee="bob"))
        assert not matches_criteria(issue, MatchCriteria(assignee="carol"))

    def test_milestone(self):
        assert matches_criteria(_issue(1, milestone="v2"), MatchCriteria(milestone="v2"))
        assert not matches_criteria(_issue(1, milestone="v1"), MatchCriteria(milestone="v2"))
        assert not matches_criteria(_issue(1), MatchCriteria(milestone="v2"))

    def test_state(self):
        closed = _issue(1, state="closed")
        assert matches_criteria(closed, MatchCriteria(state="closed"))
        assert matches_criteria(closed, MatchCriteria(state="all"))
        assert not matches_criteria(closed, MatchCriteria(state="open"))

    def test_missing_label_fails_even_when_assignee_matches(self):
        issue = _issue(1, assignees=["alice"])
        assert not matches_criteria(issue, MatchCriteria(labels=["deploy"], assignee="alice"))


class TestSourceSyncInit:
    def test_unknown_mode_raises(self, repo):
        with pytest.raises(ConfigError, match="Unknown sync type"):
            SourceSync(repo, working_copy(), mode="branch")

    def test_mode_is_normalised(self, repo):
        assert SourceSync(repo, working_copy(), mode=" PR ").mode == PR_MODE

    def test_defaults_to_issue_mode(self, repo):
        assert SourceSync(repo, working_copy(), mode="").mode == ISSUE_MODE


class TestSyncPrs:
    def test_adopts_newest_matching_merge(self, repo):
        repo.get_issue.side_effect = lambda n: _issue(n, labels=["deploy"], state="closed")
        sync = SourceSync(repo, working_copy(), MatchCriteria(labels=["deploy"]), mode=PR_MODE)

        assert sync.sync() is True
        assert sync.state.commit == "ccc333"
        assert sync.state.pull_request.number == 3
        assert sync.state.issue_number == 3

    def test_unchanged_when_newest_is_tracked(self, repo):
        state = TrackedState(commit="ccc333")
        sync = SourceSync(repo, working_copy(), mode=PR_MODE, state=state)

        assert sync.sync() is False
        repo.get_issue.assert_not_called()

    def test_skips_non_matching_entries(self, repo):
        repo.get_issue.side_effect = lambda n: _issue(n, labels=["deploy"] if n == 2 else [])
        sync = SourceSync(repo, working_copy(), MatchCriteria(labels=["deploy"]), mode=PR_MODE)

        assert sync.sync() is True
        assert sync.state.commit == "bbb222"

    def test_stops_at_tracked_commit_even_if_newer_do_not_match(self, repo):
        repo.get_issue.side_effect = lambda n: _issue(n)
        state = TrackedState(commit="bbb222")
        sync = SourceSync(repo, working_copy(), MatchCriteria(labels=["deploy"]), mode=PR_MODE, state=state)

        assert sync.sync() is False
        repo.get_issue.assert_called_once_with(3)

    def test_no_match_raises(self, repo):
        repo.get_issue.side_effect = lambda n: _issue(n)
        sync = SourceSync(repo, working_copy(), MatchCriteria(labels=["deploy"]), mode=PR_MODE)
        with pytest.raises(NoMatchError, match="no matching PRs found"):
            sync.sync()

    def test_reads_log_for_configured_branch(self, repo):
        wc = working_copy()
        repo.get_issue.side_effect = lambda n: _issue(n)
        SourceSync(repo, wc, mode=PR_MODE, branch="main").sync()
        wc.merge_log.assert_called_once_with("main")


class TestSyncIssues:
    BODY = "[pull-request]: #42\n[commit]: abc123\n\nRollout #42\n"

    def test_adopts_newest_issue(self, repo):
        repo.get_issues.return_value = [_issue(10, body=self.BODY), _issue(9, body="")]
        sync = SourceSync(repo, working_copy(), MatchCriteria(labels=["rollout"]))

        assert sync.sync() is True
        assert sync.state.issue_number == 10
        assert sync.state.commit == "abc123"
        assert sync.state.pull_request.number == 42

    def test_same_issue_is_unchanged(self, repo):
        repo.get_issues.return_value = [_issue(10, body=self.BODY)]
        sync = SourceSync(repo, working_copy())
        sync.sync()

        assert sync.sync() is False
        assert repo.get_pull.call_count == 1

    def test_no_issues_raises(self, repo):
        repo.get_issues.return_value = []
        with pytest.raises(NoMatchError):
            SourceSync(repo, working_copy()).sync()

    def test_malformed_body_raises_once_then_unchanged(self, repo):
        repo.get_issues.return_value = [_issue(10, body="no markers here")]
        sync = SourceSync(repo, working_copy())

        with pytest.raises(MalformedIssueBodyError):
            sync.sync()
        assert sync.sync() is False
        assert sync.state.commit == ""

    def test_closed_newest_issue_is_not_rolled_out(self, repo):
        repo.get_issues.return_value = [_issue(10, body=self.BODY, state="closed")]
        sync = SourceSync(repo, working_copy(), MatchCriteria(state="all"))

        assert sync.sync() is False
        assert sync.state.commit == "abc123"

    def test_tracked_issue_refreshed(self, repo):
        first = _issue(10, body=self.BODY)
        again = _issue(10, body=self.BODY, state="closed")
        repo.get_issues.side_effect = [[first], [again]]
        sync = SourceSync(repo, working_copy())

        assert sync.sync() is True
        assert sync.sync() is False
        assert sync.state.issue is again

    def test_reads_only_the_newest_issue(self, repo):
        consumed = []

        def listing():
            for number in range(10, 0, -1):
                consumed.append(number)
                yield _issue(number, body=self.BODY)

        repo.get_issues.return_value = listing()
        sync = SourceSync(repo, working_copy())

        assert sync.sync() is True
        assert consumed == [10]
