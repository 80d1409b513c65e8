"""Tests for issue-body marker and merge-log parsing."""

import pytest

from kapply_core.errors import MalformedIssueBodyError
from kapply_core.markers import (
    MergeEntry,
    RolloutMarkers,
    parse_merge_log,
    parse_merge_log_line,
    parse_rollout_markers,
    render_rollout_markers,
)


class TestParseRolloutMarkers:
    def test_parses_pr_and_commit(self):
        body = "[pull-request]: #42\n[commit]: abc123\n\nRollout #42\n"
        assert parse_rollout_markers(body) == RolloutMarkers(pr_number=42, commit="abc123")

    def test_markers_may_follow_other_text(self):
        body = "Some preamble\n[pull-request]: #7\n[commit]: deadbeef\n"
        assert parse_rollout_markers(body).pr_number == 7

    def test_missing_commit_marker_raises(self):
        with pytest.raises(MalformedIssueBodyError) as exc:
            parse_rollout_markers("[pull-request]: #42\n\nRollout #42\n", issue_number=9)
        assert exc.value.issue_number == 9
        assert "#9" in str(exc.value)

    def test_commit_must_be_followed_by_whitespace(self):
        with pytest.raises(MalformedIssueBodyError):
            parse_rollout_markers("[pull-request]: #42\n[commit]: abc123")

    def test_swapped_order_is_malformed(self):
        with pytest.raises(MalformedIssueBodyError):
            parse_rollout_markers("[commit]: abc123\n[pull-request]: #42\n")

    def test_none_body_is_malformed(self):
        with pytest.raises(MalformedIssueBodyError):
            parse_rollout_markers(None)

    def test_rendered_markers_parse_back(self):
        body = render_rollout_markers(42, "abc123") + "\nRollout #42\n"
        assert parse_rollout_markers(body) == RolloutMarkers(42, "abc123")


class TestMergeLog:
    def test_parses_merge_line(self):
        line = "abc123 Merge pull request #42 from someone/feature"
        assert parse_merge_log_line(line) == MergeEntry(commit="abc123", pr_number=42)

    def test_ignores_non_merge_line(self):
        assert parse_merge_log_line("abc123 Merge branch 'master' into feature") is None

    def test_ignores_blank_line(self):
        assert parse_merge_log_line("") is None

    def test_preserves_newest_first_order(self):
        output = (
            "ccc333 Merge pull request #3 from a/c\n"
            "bbb222 Merge branch 'x'\n"
            "aaa111 Merge pull request #1 from a/a\n"
        )
        assert parse_merge_log(output) == [MergeEntry("ccc333", 3), MergeEntry("aaa111", 1)]
