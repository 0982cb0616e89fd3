"""
Score cache backed by admission_score_cache.

Keys embed engine and calibration versions. A hit is honored only when the caller's
original waiting position is within WAITING_POSITION_TOLERANCE of the cached one
(0 stands for "not supplied"). Read failures mean a miss; write failures are logged.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admission.config import settings
from admission.models.admission_score_cache import AdmissionScoreCache
from admission.services.scoring.types import AdmissionScoreResult

logger = logging.getLogger(__name__)

WAITING_POSITION_TOLERANCE = 2


def cache_key(facility_id: str, age_band: str, w_eff: int, engine_version: str, calibration_version: str) -> str:
    return f"{facility_id}|{age_band}|{w_eff}|{engine_version}|{calibration_version}"


def read_cached_score(
    db: Session,
    key: str,
    waiting_position_original: Optional[int],
    now: datetime,
) -> Optional[AdmissionScoreResult]:
    try:
        row = (
            db.query(AdmissionScoreCache)
            .filter(AdmissionScoreCache.cache_key == key, AdmissionScoreCache.expires_at > now)
            .first()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Score cache read failed key=%s, recalculating: %s", key, e)
        return None
    if row is None:
        return None

    cached_original = row.waiting_position_original or 0
    input_original = waiting_position_original or 0
    if abs(cached_original - input_original) > WAITING_POSITION_TOLERANCE:
        logger.info(
            "Cache hit but waiting_position mismatch key=%s cached=%s input=%s, recalculating",
            key, cached_original, input_original,
        )
        return None

    try:
        payload = json.loads(row.payload_json)
    except (TypeError, json.JSONDecodeError) as e:
        logger.warning("Score cache payload unreadable key=%s, recalculating: %s", key, e)
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def write_cached_score(
    db: Session,
    key: str,
    result: AdmissionScoreResult,
    *,
    child_age_band: str,
    priority_type: str,
    waiting_position: int,
    waiting_position_original: Optional[int],
    w_eff: int,
    calibration_version: str,
    now: datetime,
    ttl_hours: Optional[int] = None,
) -> bool:
    """Upsert (last write wins). Returns False instead of raising when the write fails."""
    ttl = settings.score_cache_ttl_hours if ttl_hours is None else ttl_hours
    values = dict(
        facility_id=result["facility_id"],
        child_age_band=child_age_band,
        priority_type=priority_type,
        waiting_position=int(waiting_position),
        waiting_position_original=waiting_position_original or 0,
        w_eff=w_eff,
        region_key=result["region_key"],
        engine_version=result["engine_version"],
        calibration_version=calibration_version,
        payload_json=json.dumps(result, ensure_ascii=False),
        created_at=now,
        expires_at=now + timedelta(hours=ttl),
    )
    try:
        row = db.get(AdmissionScoreCache, key)
        if row is None:
            db.add(AdmissionScoreCache(cache_key=key, **values))
        else:
            for name, value in values.items():
                setattr(row, name, value)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Failed to cache admission score key=%s: %s", key, e)
        return False
    return True
