"""
TamperWatch - Periodic scheduler.

Runs a task once immediately, then every ``interval`` seconds on the calling
thread until stop() is called. Cycles never overlap: a cycle that overruns the
interval is followed straight away by the next one.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Single-timeline periodic runner with a cancellation event.

    ``wait(timeout) -> bool`` blocks until the next tick and returns True when
    shutdown was requested; it defaults to ``stop_event.wait``. Tests inject
    their own to drive cycles without real sleeping.
    """

    def __init__(
        self,
        interval: float,
        stop_event: Optional[threading.Event] = None,
        wait: Optional[Callable[[float], bool]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.stop_event = stop_event or threading.Event()
        self._wait = wait or self.stop_event.wait
        self._clock = clock
        self.cycles = 0
        self.overruns = 0

    def stop(self) -> None:
        """Request shutdown; an in-flight cycle is allowed to finish."""
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    def run(self, task: Callable[[], object]) -> int:
        """Run task until stop() is called. Returns the number of cycles run."""
        logger.info("Scheduler started (interval=%.0fs)", self.interval)
        while not self.stopped:
            started = self._clock()
            try:
                task()
            except Exception as e:
                logger.exception("Scan cycle failed: %s", e)
            self.cycles += 1
            if self.stopped:
                break

            elapsed = self._clock() - started
            remaining = self.interval - elapsed
            if remaining <= 0:
                self.overruns += 1
                logger.warning("Scan took %.1fs, longer than the %.0fs interval; starting next scan now",
                               elapsed, self.interval)
                remaining = 0.0
            if self._wait(remaining):
                break
        logger.info("Scheduler stopped after %d cycle(s)", self.cycles)
        return self.cycles
