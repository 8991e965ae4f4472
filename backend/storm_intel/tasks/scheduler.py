"""APScheduler setup for the periodic SPC outlook refresh."""

import asyncio
import logging

from apscheduler.schedulers.background import BackgroundScheduler

from storm_intel.config import settings
from storm_intel.services.prediction_service import PredictiveStormService

logger = logging.getLogger(__name__)


def _run_outlook_refresh(service: PredictiveStormService):
    loop = asyncio.new_event_loop()
    try:
        if not loop.run_until_complete(service.refresh_outlooks()):
            logger.warning("SPC outlook refresh failed for every day; keeping previous cache")
    except Exception as e:
        logger.error("SPC outlook refresh job failed: %s", e)
    finally:
        loop.close()


def start_scheduler(service: PredictiveStormService) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()

    scheduler.add_job(
        _run_outlook_refresh,
        "interval",
        args=[service],
        minutes=settings.prediction_refresh_interval,
        id="spc_outlook_refresh",
        name="SPC outlook refresh",
        max_instances=1,
    )

    scheduler.start()
    logger.info("Scheduler started: SPC outlooks every %d min", settings.prediction_refresh_interval)
    return scheduler


def stop_scheduler(scheduler: BackgroundScheduler | None):
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
