"""
Telemetry Timer

Calls a tick function every `interval` seconds on a background task until
cancelled. Cancelling is idempotent; a tick already in flight when cancel()
is called is skipped.
"""

import logging
from typing import Callable

logger = logging.getLogger(__name__)


class TelemetryTimer:
    """Periodic ping/position sampler for one session"""

    def __init__(self, tick: Callable[[], None], interval: float,
                 start_task: Callable, sleep: Callable, name: str = ''):
        self._tick = tick
        self.interval = interval
        self._start_task = start_task
        self._sleep = sleep
        self.name = name
        self._started = False
        self._cancelled = False

    @property
    def active(self) -> bool:
        return self._started and not self._cancelled

    def start(self) -> None:
        # a timer cancelled before it started never runs
        if self._started or self._cancelled:
            return
        self._started = True
        self._start_task(self._run)

    def cancel(self) -> bool:
        """
        Stop the timer.

        Returns:
            True if this call stopped a running timer, False if it was
            already cancelled or never started
        """
        if self._cancelled:
            return False
        self._cancelled = True
        if self._started:
            logger.debug(f"Telemetry timer {self.name} cancelled")
            return True
        return False

    def _run(self) -> None:
        while not self._cancelled:
            self._sleep(self.interval)
            if self._cancelled:
                break
            try:
                self._tick()
            except Exception as e:
                logger.error(f"Telemetry tick failed for {self.name}: {e}", exc_info=True)
