# jobs/scheduler.py
from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QObject, QThread, QTimer, Signal

logger = logging.getLogger(__name__)


class JobThread(QThread):
    finished_signal = Signal(object)   # the tick's FillResult / FeedResult

    def __init__(self, job, parent=None):
        super().__init__(parent)
        self.job = job

    def run(self):
        self.finished_signal.emit(self.job.tick())


class PeriodicJob(QObject):
    """
    Runs job.tick() on a worker thread every interval. A timeout that fires
    while the previous tick's thread is still alive is dropped, not queued.
    """

    tick_finished = Signal(object)

    def __init__(self, name: str, job, interval_s: float, parent=None):
        super().__init__(parent)
        self.name = name
        self.job = job
        self._thread: Optional[JobThread] = None

        self._timer = QTimer(self)
        self._timer.setInterval(int(interval_s * 1000))
        self._timer.timeout.connect(self._on_timeout)

    def start(self, run_now: bool = True) -> None:
        logger.info("Scheduling %s every %ss", self.name, self._timer.interval() / 1000)
        self._timer.start()
        if run_now:
            self._on_timeout()

    def stop(self, wait_ms: int = 30_000) -> None:
        self._timer.stop()
        if self._thread is not None and not self._thread.wait(wait_ms):
            logger.warning("%s did not finish within %dms", self.name, wait_ms)

    def is_busy(self) -> bool:
        return self._thread is not None and self._thread.isRunning()

    def _on_timeout(self) -> None:
        if self.is_busy():
            logger.debug("%s still running, skipping tick", self.name)
            return

        thread = JobThread(self.job)
        thread.finished_signal.connect(self.tick_finished)
        self._thread = thread
        thread.start()
