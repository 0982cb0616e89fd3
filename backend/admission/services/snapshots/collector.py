"""
Snapshot collector: record every facility's current enrollment as a waitlist snapshot.

Stage one of turnover detection happens here: a drop in enrollment versus the facility's
previous snapshot marks the new row as a candidate. Stage two (confirmation) runs right
after, over every outstanding candidate in the table, not only this run's.
"""
import json
import logging

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admission.config import settings
from admission.core.clock import SYSTEM_CLOCK, Clock
from admission.core.constants import (
    AGE_BANDS,
    SNAPSHOT_DEFAULT_CONFIDENCE,
    SNAPSHOT_SOURCE_PLACES_SYNC,
    WAITLIST_CLASS_RATIO,
)
from admission.models.facility import Facility, parse_capacity_by_class
from admission.models.waitlist_snapshot import TurnoverState, WaitlistSnapshot
from admission.services.snapshots.confirmation import confirm_turnover_candidates

logger = logging.getLogger(__name__)


def estimate_waitlist_by_class(capacity_by_class: dict[str, int]) -> dict[str, int]:
    """Per-band waitlist estimate: a fixed share of each class's capacity (0 when unknown)."""
    out = {band: 0 for band in AGE_BANDS}
    for band, cap in capacity_by_class.items():
        if band in out and cap > 0:
            out[band] = round(cap * WAITLIST_CLASS_RATIO)
    return out


def initial_turnover_state(enrolled_delta: int) -> TurnoverState:
    return TurnoverState.CANDIDATE if enrolled_delta < 0 else TurnoverState.UNCHANGED


def latest_enrolled_by_facility(db: Session, facility_ids: list[str]) -> dict[str, int]:
    """Most recent current_enrolled per facility, one grouped query for the whole id set."""
    if not facility_ids:
        return {}
    latest = (
        db.query(
            WaitlistSnapshot.facility_id.label("facility_id"),
            func.max(WaitlistSnapshot.snapshot_at).label("latest_at"),
        )
        .filter(WaitlistSnapshot.facility_id.in_(facility_ids))
        .group_by(WaitlistSnapshot.facility_id)
        .subquery()
    )
    rows = (
        db.query(WaitlistSnapshot.facility_id, WaitlistSnapshot.current_enrolled)
        .join(
            latest,
            and_(
                WaitlistSnapshot.facility_id == latest.c.facility_id,
                WaitlistSnapshot.snapshot_at == latest.c.latest_at,
            ),
        )
        .all()
    )
    return {fid: enrolled for fid, enrolled in rows}


def collect_snapshots(
    db: Session,
    clock: Clock = SYSTEM_CLOCK,
    batch_size: int | None = None,
) -> dict[str, int]:
    """
    Append one snapshot per facility with positive capacity, then confirm outstanding
    turnover candidates. Writes go out in batches; a failed batch is rolled back and
    logged and later batches are still attempted.
    Returns {"collected", "failed", "to_detected"}.
    """
    now = clock.now()
    size = batch_size or settings.snapshot_batch_size

    facilities = (
        db.query(
            Facility.facility_id,
            Facility.capacity_total,
            Facility.capacity_by_class_json,
            Facility.current_enrolled,
        )
        .filter(Facility.capacity_total > 0)
        .all()
    )
    prev_enrolled = latest_enrolled_by_facility(db, [f.facility_id for f in facilities])

    collected = 0
    failed = 0
    batch: list[WaitlistSnapshot] = []

    def flush() -> None:
        nonlocal collected, failed
        if not batch:
            return
        try:
            db.add_all(batch)
            db.commit()
            collected += len(batch)
        except SQLAlchemyError as e:
            db.rollback()
            failed += len(batch)
            logger.warning("Snapshot batch write failed (%s rows, run continues): %s", len(batch), e)
        batch.clear()

    for f in facilities:
        enrolled = f.current_enrolled or 0
        delta = enrolled - prev_enrolled.get(f.facility_id, enrolled)
        waitlist = estimate_waitlist_by_class(parse_capacity_by_class(f.capacity_by_class_json))
        batch.append(
            WaitlistSnapshot(
                facility_id=f.facility_id,
                snapshot_at=now,
                current_enrolled=enrolled,
                waitlist_total=sum(waitlist.values()),
                waitlist_by_class_json=json.dumps(waitlist),
                enrolled_delta=delta,
                to_state=initial_turnover_state(delta).value,
                source=SNAPSHOT_SOURCE_PLACES_SYNC,
                confidence=SNAPSHOT_DEFAULT_CONFIDENCE,
            )
        )
        if len(batch) >= size:
            flush()
    flush()

    to_detected = confirm_turnover_candidates(db, clock=clock)

    logger.info(
        "Snapshot collection complete: facilities=%s collected=%s failed=%s to_detected=%s",
        len(facilities), collected, failed, to_detected,
    )
    return {"collected": collected, "failed": failed, "to_detected": to_detected}
