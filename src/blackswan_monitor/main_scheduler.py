"""Standalone worker: keeps the feed cache current and runs hourly analyses.

Runs until interrupted (SIGINT/SIGTERM).

Usage:
    python -m blackswan_monitor.main_scheduler
"""

import signal

from .config import get_settings
from .log import setup_logging, get_logger
from .scheduler import CycleScheduler
from .service import BlackSwanService

setup_logging()
logger = get_logger("worker")


def main():
    settings = get_settings()
    service = BlackSwanService(settings)
    scheduler = CycleScheduler(service.run_cycle, interval_hours=settings.ANALYSIS_INTERVAL_HOURS)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down gracefully")
        scheduler.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    service.start()
    logger.info(f"Monitoring {len(service.cache.sources)} feed collections in {settings.DB_PATH}")
    try:
        scheduler.run_forever()
    finally:
        service.stop()
        logger.info("Worker stopped")


if __name__ == "__main__":
    main()
