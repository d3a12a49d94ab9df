from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime, timezone
from keycabinet.database import get_db
from keycabinet.services.overdue_monitor import OverdueMonitor
from keycabinet.utils.exceptions import FaultError
from keycabinet.config import settings
import logging

logger = logging.getLogger(__name__)


def sweep_overdue_loans():
    """Background task to flag overdue loans"""
    try:
        with get_db() as db:
            OverdueMonitor(db).sweep()
    except FaultError as e:
        # Nothing was committed; the next interval retries.
        logger.warning(f"Overdue sweep skipped: {e.message}")
    except Exception as e:
        logger.error(f"Overdue sweep failed: {e}", exc_info=True)


def start_scheduler():
    """Start the APScheduler for the periodic overdue sweep"""
    scheduler = BackgroundScheduler(timezone="UTC")

    if settings.overdue_sweep_enabled:
        interval = settings.overdue_sweep_interval_seconds
        scheduler.add_job(
            sweep_overdue_loans,
            trigger=IntervalTrigger(seconds=interval),
            id="overdue_sweep",
            name="Flag loans past their expected return time",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        logger.info(f"Scheduler started - overdue sweep every {interval} seconds")
    else:
        logger.info("Scheduler started - overdue sweep disabled via OVERDUE_SWEEP_ENABLED")

    scheduler.start()
    return scheduler
