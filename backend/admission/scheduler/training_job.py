"""
Daily roll-up of the last 6 months of snapshots into to_pattern data blocks.
"""
import logging

from admission.db.session import SessionLocal
from admission.services.training import update_training_data_blocks

logger = logging.getLogger(__name__)


def run_training_job() -> None:
    db = SessionLocal()
    try:
        updated = update_training_data_blocks(db)
        logger.info("Training job: %s data blocks updated", updated)
    except Exception as e:
        logger.exception("Training job failed: %s", e)
        db.rollback()
    finally:
        db.close()
