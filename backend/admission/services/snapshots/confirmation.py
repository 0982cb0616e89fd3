"""
Stage two of turnover detection: confirm candidate drops against the next settled snapshot.

A candidate (enrollment dropped) is confirmed when the next later snapshot for the same
facility that is not itself a candidate either
  (a) shows enrolled_delta <= 0 (enrollment did not recover), or
  (b) comes from the same source and moved by at least one seat.
A drop with no later settled snapshot stays a candidate.

Every read is one query over the candidate facility set (next snapshots, recent alerts,
facility names), joined in memory. Confirmations are one bulk update plus one bulk insert.
"""
import bisect
import logging
from collections import defaultdict
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admission.config import settings
from admission.core.clock import SYSTEM_CLOCK, Clock, as_utc
from admission.core.constants import (
    DEFAULT_FACILITY_NAME,
    TO_ALERT_AGE_CLASS_ALL,
    TO_ALERT_SOURCE,
)
from admission.models.facility import Facility
from admission.models.to_alert import ToAlert
from admission.models.waitlist_snapshot import TurnoverState, WaitlistSnapshot

logger = logging.getLogger(__name__)


def is_confirmed(candidate: WaitlistSnapshot, next_snapshot: WaitlistSnapshot) -> bool:
    next_delta = next_snapshot.enrolled_delta or 0
    if next_delta <= 0:
        return True
    return next_snapshot.source == candidate.source and abs(next_delta) >= 1


def alert_confidence(slots: int) -> float:
    if slots >= 3:
        return 0.9
    if slots >= 2:
        return 0.8
    return 0.65


def _settled_snapshots_after(
    db: Session, facility_ids: list[str], since
) -> dict[str, list[WaitlistSnapshot]]:
    """Non-candidate snapshots newer than `since`, grouped by facility in time order."""
    rows = (
        db.query(WaitlistSnapshot)
        .filter(
            WaitlistSnapshot.facility_id.in_(facility_ids),
            WaitlistSnapshot.to_state != TurnoverState.CANDIDATE.value,
            WaitlistSnapshot.snapshot_at > since,
        )
        .order_by(WaitlistSnapshot.facility_id, WaitlistSnapshot.snapshot_at, WaitlistSnapshot.id)
        .all()
    )
    by_facility: dict[str, list[WaitlistSnapshot]] = defaultdict(list)
    for row in rows:
        by_facility[row.facility_id].append(row)
    return by_facility


def _next_settled(settled: list[WaitlistSnapshot], times: list, candidate: WaitlistSnapshot):
    idx = bisect.bisect_right(times, as_utc(candidate.snapshot_at))
    return settled[idx] if idx < len(settled) else None


def confirm_turnover_candidates(
    db: Session,
    clock: Clock = SYSTEM_CLOCK,
    cooldown_hours: int | None = None,
) -> int:
    """
    Confirm outstanding candidates system-wide and write TO alerts. Facilities with an
    alert inside the cooldown window are skipped (their candidates stay pending).
    Returns the number of newly confirmed events.
    """
    now = clock.now()
    cooldown = timedelta(hours=cooldown_hours if cooldown_hours is not None else settings.to_cooldown_hours)

    candidates = (
        db.query(WaitlistSnapshot)
        .filter(
            WaitlistSnapshot.to_state == TurnoverState.CANDIDATE.value,
            WaitlistSnapshot.enrolled_delta < 0,
        )
        .order_by(WaitlistSnapshot.snapshot_at, WaitlistSnapshot.id)
        .all()
    )
    if not candidates:
        return 0

    facility_ids = sorted({c.facility_id for c in candidates})
    earliest = min(c.snapshot_at for c in candidates)

    settled_by_facility = _settled_snapshots_after(db, facility_ids, earliest)
    settled_times = {
        fid: [as_utc(s.snapshot_at) for s in rows] for fid, rows in settled_by_facility.items()
    }

    recent_alert_rows = (
        db.query(ToAlert.facility_id)
        .filter(ToAlert.facility_id.in_(facility_ids), ToAlert.detected_at >= now - cooldown)
        .distinct()
        .all()
    )
    cooling_down = {r[0] for r in recent_alert_rows}

    name_rows = (
        db.query(Facility.facility_id, Facility.name)
        .filter(Facility.facility_id.in_(facility_ids))
        .all()
    )
    facility_names = {fid: name or DEFAULT_FACILITY_NAME for fid, name in name_rows}

    confirmed_ids: list[int] = []
    alerts: list[ToAlert] = []
    for candidate in candidates:
        fid = candidate.facility_id
        settled = settled_by_facility.get(fid)
        if not settled:
            continue
        next_snapshot = _next_settled(settled, settled_times[fid], candidate)
        if next_snapshot is None or not is_confirmed(candidate, next_snapshot):
            continue
        if fid in cooling_down:
            continue

        slots = abs(candidate.enrolled_delta)
        confirmed_ids.append(candidate.id)
        alerts.append(
            ToAlert(
                facility_id=fid,
                facility_name=facility_names.get(fid, DEFAULT_FACILITY_NAME),
                age_class=TO_ALERT_AGE_CLASS_ALL,
                detected_at=now,
                estimated_slots=slots,
                confidence=alert_confidence(slots),
                source=TO_ALERT_SOURCE,
                prev_enrolled=candidate.current_enrolled + slots,
                curr_enrolled=candidate.current_enrolled,
            )
        )
        # One alert per facility per window, including within this run
        cooling_down.add(fid)

    if not confirmed_ids:
        return 0

    try:
        db.query(WaitlistSnapshot).filter(
            WaitlistSnapshot.id.in_(confirmed_ids),
            WaitlistSnapshot.to_state == TurnoverState.CANDIDATE.value,
        ).update({WaitlistSnapshot.to_state: TurnoverState.CONFIRMED.value}, synchronize_session=False)
        db.add_all(alerts)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("TO confirmation write failed (%s candidates): %s", len(confirmed_ids), e)
        return 0

    logger.info(
        "TO confirmation: candidates=%s confirmed=%s facilities=%s",
        len(candidates), len(confirmed_ids), len(facility_ids),
    )
    return len(confirmed_ids)
