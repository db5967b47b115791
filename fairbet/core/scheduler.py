from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from fairbet.core.logger import get_logger

logger = get_logger("scheduler")


class SessionSweeper:
    """Periodically settles abandoned mines boards and blackjack hands."""

    def __init__(self, casino, interval_seconds: int = 60):
        self.casino = casino
        self.interval_seconds = interval_seconds
        self.scheduler = BackgroundScheduler()

    def start(self):
        self.scheduler.add_job(
            self.sweep,
            IntervalTrigger(seconds=self.interval_seconds),
            id="expire_sessions",
            name="Expire abandoned game sessions",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(f"Session sweeper started (every {self.interval_seconds}s)")

    def sweep(self) -> int:
        return self.casino.expire_sessions()

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Session sweeper shutdown")
