# newsfeed/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
import pytz

from .config import TIMEZONE, INGEST_INTERVAL_HOURS, TRENDING_REFRESH_MINUTES
from .workflow import run_ingest
from .trending import refresh_trending
from .logging_setup import get_logger

logger = get_logger("newsfeed.scheduler")
scheduler = BackgroundScheduler(timezone=pytz.timezone(TIMEZONE))

def _job_listener(event):
    if event.exception:
        # APScheduler already captures the traceback; this routes it through our logger too
        logger.error(
            "JOB_ERROR",
            exc_info=(type(event.exception), event.exception, event.exception.__traceback__),
            extra={"handled": False, "job_id": event.job_id, "run_time": str(event.scheduled_run_time)},
        )
    else:
        logger.info(
            "JOB_OK",
            extra={"job_id": event.job_id, "run_time": str(event.scheduled_run_time)}
        )

def _refresh_trending_job():
    refresh_trending()

def add_jobs():
    tz = pytz.timezone(TIMEZONE)
    scheduler.add_job(
        run_ingest,
        IntervalTrigger(hours=INGEST_INTERVAL_HOURS, timezone=tz),
        id="news_ingest",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        _refresh_trending_job,
        IntervalTrigger(minutes=TRENDING_REFRESH_MINUTES, timezone=tz),
        id="trending_refresh",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_listener(_job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    logger.info(
        f"Jobs registered: news_ingest every {INGEST_INTERVAL_HOURS}h, "
        f"trending_refresh every {TRENDING_REFRESH_MINUTES}m ({TIMEZONE})"
    )

def start_scheduler():
    if not scheduler.running:
        scheduler.start()
        logger.info("APScheduler started")

def shutdown_scheduler(wait: bool = False):
    if scheduler.running:
        scheduler.shutdown(wait=wait)
        logger.info("APScheduler stopped")
