"""Tests for the poll/backoff/done loop."""

import pytest
import requests
from github import GithubException

from kapply_core.errors import KapplyError
from kapply_core.poll import BACKOFF, DONE, POLL, PollLoop


class TestPollLoop:
    def test_done_on_first_success_without_sleeping(self, mocker):
        sleep = mocker.Mock()
        loop = PollLoop(lambda: True, interval=5, sleep=sleep)
        assert loop.run() is True
        assert loop.state == DONE
        sleep.assert_not_called()

    def test_sleeps_between_attempts(self, mocker):
        sleep = mocker.Mock()
        results = iter([False, False, True])
        loop = PollLoop(lambda: next(results), interval=5, sleep=sleep)

        assert loop.run() is True
        assert loop.polls == 3
        assert sleep.call_count == 2
        sleep.assert_called_with(5)

    def test_max_cycles_stops_without_trailing_sleep(self, mocker):
        sleep = mocker.Mock()
        loop = PollLoop(lambda: False, interval=1, sleep=sleep)
        assert loop.run(max_cycles=3) is False
        assert loop.polls == 3
        assert sleep.call_count == 2
        assert loop.state == BACKOFF

    def test_retryable_errors_are_logged_and_retried(self, mocker):
        calls = {"n": 0}

        def action():
            calls["n"] += 1
            if calls["n"] == 1:
                raise KapplyError("transient")
            if calls["n"] == 2:
                raise GithubException(502, {"message": "bad gateway"}, None)
            return True

        loop = PollLoop(action, interval=0, sleep=mocker.Mock())
        assert loop.run() is True
        assert calls["n"] == 3
        assert loop.last_error is None

    def test_last_error_is_kept_while_failing(self, mocker):
        def action():
            raise KapplyError("still broken")

        loop = PollLoop(action, interval=0, sleep=mocker.Mock())
        loop.run(max_cycles=2)
        assert str(loop.last_error) == "still broken"

    def test_non_retryable_errors_propagate(self, mocker):
        def action():
            raise ValueError("bug")

        with pytest.raises(ValueError):
            PollLoop(action, interval=0, sleep=mocker.Mock()).run()

    def test_empty_retry_on_propagates_everything(self, mocker):
        def action():
            raise KapplyError("fatal here")

        with pytest.raises(KapplyError):
            PollLoop(action, interval=0, sleep=mocker.Mock(), retry_on=()).run()

    def test_step_transitions(self, mocker):
        loop = PollLoop(lambda: False, interval=0, sleep=mocker.Mock())
        assert loop.state == POLL
        assert loop.step() == BACKOFF
        assert loop.step() == POLL

    def test_network_errors_are_retried(self, mocker):
        results = iter([requests.exceptions.ConnectionError("github unreachable"), requests.exceptions.ReadTimeout(), True])

        def action():
            r = next(results)
            if isinstance(r, Exception):
                raise r
            return r

        loop = PollLoop(action, interval=0, sleep=mocker.Mock())
        assert loop.run() is True
        assert loop.polls == 3
