"""
Countdown source for an exam session.

Calls the controller's tick() once per interval on a background thread
until the session completes or the ticker is stopped.
"""

import logging
import threading

from history_grader.session.controller import ExamSessionController

logger = logging.getLogger(__name__)


class CountdownTicker:
    """Recurring one-second callback feeding an ExamSessionController."""

    def __init__(self, controller: ExamSessionController, interval: float = 1.0):
        """
        Initialize the ticker.

        Args:
            controller: The session to count down.
            interval: Wall-clock seconds between ticks; each tick counts as
                one session second.
        """
        self._controller = controller
        self._interval = interval
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name="exam-countdown", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            if self._controller.is_finished:
                break
            self._controller.tick(1)
        logger.debug("Countdown stopped at %s", self._controller.step)
