"""Job scheduler using APScheduler."""

import logging
from typing import NoReturn

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pledge.config import Settings
from pledge.sweep import resolve_sweep_job

logger = logging.getLogger(__name__)


def build_scheduler(settings: Settings) -> BlockingScheduler:
    """Create the scheduler with the settlement sweep registered."""
    scheduler = BlockingScheduler()

    scheduler.add_job(
        resolve_sweep_job,
        IntervalTrigger(minutes=settings.scheduler.resolve_interval_minutes),
        id="resolve-sweep",
        name="Settlement Sweep",
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        f"Registered job: Settlement Sweep (every {settings.scheduler.resolve_interval_minutes} min)"
    )
    return scheduler


def start_scheduler(settings: Settings) -> NoReturn:
    """Start the APScheduler with configured jobs."""
    scheduler = build_scheduler(settings)

    try:
        logger.info("✓ Scheduler starting...")
        logger.info(f"✓ {len(scheduler.get_jobs())} jobs registered")
        logger.info("Press Ctrl+C to stop\n")

        scheduler.start()

    except (KeyboardInterrupt, SystemExit):
        logger.info("\nReceived interrupt signal")
        scheduler.shutdown()
        logger.info("✓ Scheduler stopped cleanly")
