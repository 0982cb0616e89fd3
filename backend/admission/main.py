"""
FastAPI app entrypoint.

Runs the snapshot pipeline and the training aggregator on a background scheduler.
Scoring is called in-process (services.scoring); the only route is /health.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from admission.config import settings
from admission.core.constants import SNAPSHOT_JOB_ID, TRAINING_JOB_ID
from admission.db.session import check_database
from admission.scheduler.snapshot_job import run_snapshot_job
from admission.scheduler.training_job import run_training_job
from admission.services.scoring.tables import DEFAULT_ENGINE_CONFIG

logger = logging.getLogger(__name__)

_scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Unreachable store is a configuration error: refuse to start
    check_database()

    _scheduler.add_job(
        run_snapshot_job,
        "interval",
        minutes=settings.snapshot_interval_minutes,
        id=SNAPSHOT_JOB_ID,
        replace_existing=True,
    )
    _scheduler.add_job(
        run_training_job,
        "cron",
        hour=settings.training_cron_hour,
        minute=0,
        timezone=settings.scoring_timezone,
        id=TRAINING_JOB_ID,
        replace_existing=True,
    )
    _scheduler.start()
    app.state.scheduler = _scheduler
    logger.info(
        "Admission backend ready: snapshot every %s min, training daily at %02d:00 %s",
        settings.snapshot_interval_minutes,
        settings.training_cron_hour,
        settings.scoring_timezone,
    )
    yield
    _scheduler.shutdown(wait=False)


app = FastAPI(title="Admission Scoring", version="0.1.0", lifespan=lifespan)


@app.get("/health")
def health() -> dict:
    jobs = [job.id for job in _scheduler.get_jobs()] if _scheduler.running else []
    return {
        "status": "ok",
        "engine_version": DEFAULT_ENGINE_CONFIG.engine_version,
        "jobs": jobs,
    }
