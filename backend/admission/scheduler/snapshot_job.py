"""
Periodic waitlist snapshot collection. Each run records one snapshot per facility and then
confirms outstanding TO candidates system-wide (see services/snapshots).
"""
import logging

from admission.db.session import SessionLocal
from admission.services.snapshots import collect_snapshots

logger = logging.getLogger(__name__)


def run_snapshot_job() -> None:
    db = SessionLocal()
    try:
        result = collect_snapshots(db)
        logger.info(
            "Snapshot job: collected=%s failed=%s to_detected=%s",
            result["collected"], result["failed"], result["to_detected"],
        )
    except Exception as e:
        logger.exception("Snapshot job failed: %s", e)
        db.rollback()
    finally:
        db.close()
