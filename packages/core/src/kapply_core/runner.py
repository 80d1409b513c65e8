"""The continuous-apply loop: sync, and roll out whenever the commit changes."""

from __future__ import annotations

import logging
import time
from typing import Callable

from kapply_core.poll import PollLoop

logger = logging.getLogger(__name__)


class ContinuousApplier:
    def __init__(
        self,
        source_sync,
        orchestrator,
        interval: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source_sync = source_sync
        self.orchestrator = orchestrator
        self.interval = interval
        self.sleep = sleep

    def run(self, max_cycles: int | None = None) -> None:
        """Clone once, then poll forever (or ``max_cycles`` times).

        A failed sync or rollout is logged and retried on the next cycle.
        """
        self.source_sync.working_copy.clone()
        PollLoop(self.cycle, self.interval, sleep=self.sleep, name="continuous apply").run(max_cycles)

    def cycle(self) -> bool:
        if not self.source_sync.sync():
            return False
        state = self.source_sync.state
        logger.info("rolling out %s from issue #%d", state.commit, state.issue.number)
        self.orchestrator.run(state.commit, state.issue)
        return False
