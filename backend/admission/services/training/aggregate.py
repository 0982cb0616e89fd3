"""
Roll six months of waitlist snapshots per facility into to_pattern data blocks.

Descriptive features only (enrollment range, TO count, season, region); the scoring engine
does not read these. One grouped query over snapshots, then one batched read each for
facilities, alert counts and existing blocks.
"""
import json
import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from admission.config import settings
from admission.core.clock import SYSTEM_CLOCK, Clock, as_utc, shift_months, to_local
from admission.core.constants import BLOCK_TYPE_TO_PATTERN, TRAINING_LOOKBACK_MONTHS
from admission.core.regions import extract_region
from admission.models.data_block import DataBlock
from admission.models.facility import Facility
from admission.models.to_alert import ToAlert
from admission.models.waitlist_snapshot import WaitlistSnapshot

logger = logging.getLogger(__name__)


def season_for_month(month: int) -> str:
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "fall"
    return "winter"


def training_block_id(facility_id: str, now: datetime) -> str:
    quarter = (now.month - 1) // 3 + 1
    return f"to_{facility_id}_{now.year}Q{quarter}"


def _features_and_label(
    agg, capacity: int, to_count: int, region: str, month: int
) -> tuple[dict, dict]:
    avg_enrolled = float(agg.avg_enrolled or 0.0)
    enrolled_range = int((agg.max_enrolled or 0) - (agg.min_enrolled or 0))
    if capacity > 0:
        avg_waiting_months = round(avg_enrolled / capacity * 12, 1)
        admission_probability = min(1.0, (enrolled_range + to_count) / (capacity * 0.3))
    else:
        avg_waiting_months = 12.0
        admission_probability = 0.1
    features = {
        "avg_waiting_months": avg_waiting_months,
        "to_count_6m": to_count,
        "season": season_for_month(month),
        "region": region,
        "enrolled_range": enrolled_range,
        "avg_capacity": capacity,
        "avg_enrolled": avg_enrolled,
    }
    label = {
        "expected_vacancies_6m": round(enrolled_range * 0.6 + to_count * 0.5),
        "admission_probability": round(admission_probability, 2),
    }
    return features, label


def update_training_data_blocks(db: Session, clock: Clock = SYSTEM_CLOCK) -> int:
    """Upsert one to_pattern block per facility with recent snapshots. Returns blocks written."""
    now = clock.now()
    since = shift_months(now, -TRAINING_LOOKBACK_MONTHS)
    local_now = to_local(now, settings.scoring_timezone)

    aggregated = (
        db.query(
            WaitlistSnapshot.facility_id.label("facility_id"),
            func.count(WaitlistSnapshot.id).label("snapshots"),
            func.avg(WaitlistSnapshot.current_enrolled).label("avg_enrolled"),
            func.min(WaitlistSnapshot.current_enrolled).label("min_enrolled"),
            func.max(WaitlistSnapshot.current_enrolled).label("max_enrolled"),
            func.max(WaitlistSnapshot.snapshot_at).label("last_snapshot_at"),
        )
        .filter(WaitlistSnapshot.snapshot_at >= since)
        .group_by(WaitlistSnapshot.facility_id)
        .all()
    )
    if not aggregated:
        logger.info("Training data blocks: no snapshots since %s, skipping", since.isoformat())
        return 0

    facility_ids = [a.facility_id for a in aggregated]
    facilities = {
        f.facility_id: f
        for f in db.query(Facility.facility_id, Facility.capacity_total, Facility.address)
        .filter(Facility.facility_id.in_(facility_ids))
        .all()
    }
    to_counts = dict(
        db.query(ToAlert.facility_id, func.count(ToAlert.id))
        .filter(ToAlert.facility_id.in_(facility_ids), ToAlert.detected_at >= since)
        .group_by(ToAlert.facility_id)
        .all()
    )
    block_ids = {fid: training_block_id(fid, local_now) for fid in facility_ids}
    existing = {
        b.block_id: b
        for b in db.query(DataBlock).filter(DataBlock.block_id.in_(list(block_ids.values()))).all()
    }

    updated = 0
    for agg in aggregated:
        fid = agg.facility_id
        facility = facilities.get(fid)
        capacity = (facility.capacity_total or 0) if facility else 0
        region = (extract_region(facility.address) if facility else None) or ""
        features, label = _features_and_label(agg, capacity, to_counts.get(fid, 0), region, local_now.month)
        features["last_snapshot_at"] = as_utc(agg.last_snapshot_at).isoformat() if agg.last_snapshot_at else None
        snapshots = int(agg.snapshots or 0)

        bid = block_ids[fid]
        row = existing.get(bid)
        if row is None:
            row = DataBlock(block_id=bid, block_type=BLOCK_TYPE_TO_PATTERN, facility_id=fid)
            db.add(row)
        row.features_json = json.dumps(features)
        row.label_json = json.dumps(label)
        row.confidence = min(0.95, 0.3 + snapshots * 0.05)
        row.source_count = snapshots
        row.is_active = True
        row.last_updated = now
        updated += 1
    db.commit()

    logger.info("Training data blocks updated: %s", updated)
    return updated
