# newsfeed/lifespan.py
from contextlib import asynccontextmanager
from fastapi import FastAPI

from .config import DB_URL, SCHEDULER_ENABLED
from .errors import DataUnavailableError
from .logging_setup import get_logger
from .store import init_db
from .scheduler import add_jobs, start_scheduler, shutdown_scheduler
from .trending import refresh_trending

logger = get_logger("newsfeed.lifespan")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("APP_STARTUP", extra={"db": DB_URL.split("://", 1)[0], "scheduler": SCHEDULER_ENABLED})
    init_db()

    if SCHEDULER_ENABLED:
        # the interval trigger first fires one period after start; seed the board now
        try:
            refresh_trending()
        except DataUnavailableError:
            logger.warning("TRENDING_SEED_SKIPPED")
        if not getattr(app.state, "scheduler_started", False):
            add_jobs()
            start_scheduler()
            app.state.scheduler_started = True

    yield

    logger.info("APP_SHUTDOWN")
    if getattr(app.state, "scheduler_started", False):
        shutdown_scheduler(wait=False)
        app.state.scheduler_started = False
