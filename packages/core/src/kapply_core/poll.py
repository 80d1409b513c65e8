"""Fixed-interval polling as an explicit poll/backoff/done state machine.

The sleep function is injected so tests can drive many cycles without
waiting in real time.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from github import GithubException
from requests.exceptions import RequestException

from kapply_core.errors import KapplyError

logger = logging.getLogger(__name__)

POLL = "poll"
BACKOFF = "backoff"
DONE = "done"

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (KapplyError, GithubException, RequestException)


class PollLoop:
    """Run ``action`` until it returns True, sleeping ``interval`` seconds between attempts.

    A falsy result or a retryable error moves the loop to backoff; retryable
    errors are logged, never raised. Anything else propagates.
    """

    def __init__(
        self,
        action: Callable[[], bool],
        interval: float,
        sleep: Callable[[float], None] = time.sleep,
        retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS,
        name: str = "poll",
    ):
        self.action = action
        self.interval = interval
        self.sleep = sleep
        self.retry_on = retry_on
        self.name = name
        self.state = POLL
        self.polls = 0
        self.last_error: BaseException | None = None

    def step(self) -> str:
        """Advance one transition and return the new state."""
        if self.state == BACKOFF:
            self.sleep(self.interval)
            self.state = POLL
        elif self.state == POLL:
            self.polls += 1
            try:
                finished = self.action()
                self.last_error = None
            except self.retry_on as e:
                logger.warning("%s: %s", self.name, e)
                self.last_error = e
                finished = False
            self.state = DONE if finished else BACKOFF
        return self.state

    def run(self, max_cycles: int | None = None) -> bool:
        """Step until done, or until ``max_cycles`` polls have run. Returns True when done."""
        while self.state != DONE:
            if max_cycles is not None and self.polls >= max_cycles and self.state == BACKOFF:
                break
            self.step()
        return self.state == DONE
