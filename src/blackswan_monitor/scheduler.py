"""Fixed-interval trigger for analysis cycles.

Runs run_cycle() every ANALYSIS_INTERVAL_HOURS at the top of the hour, either on
a background thread (inside the API process) or blocking (main_scheduler).
"""

import logging
import threading
from typing import Callable, Optional

import schedule

logger = logging.getLogger("scheduler")


class CycleScheduler:
    def __init__(self, run_cycle: Callable[[], object], interval_hours: int = 1, tick_seconds: float = 1.0):
        self.run_cycle = run_cycle
        self.interval_hours = interval_hours
        self.tick_seconds = tick_seconds
        self.scheduler = schedule.Scheduler()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.scheduler.every(interval_hours).hours.at(":00").do(self._scheduled_cycle)

    def _scheduled_cycle(self):
        logger.info("Triggered scheduled Black Swan analysis")
        outcome = self.run_cycle()
        if not getattr(outcome, "success", False):
            logger.warning(f"Scheduled analysis failed: {getattr(outcome, 'error', 'unknown error')}")

    @property
    def next_run(self):
        return self.scheduler.next_run

    def run_forever(self):
        logger.info(f"Scheduling Black Swan analysis every {self.interval_hours}h (next: {self.next_run})")
        while not self._stop.is_set():
            self.scheduler.run_pending()
            self._stop.wait(self.tick_seconds)

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="cycle-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
