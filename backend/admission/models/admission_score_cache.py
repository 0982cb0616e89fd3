"""
Computed admission scores. cache_key embeds engine and calibration versions, so bumping
either one orphans old rows without a migration. Last write wins per key.
"""
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from admission.db.base import Base


class AdmissionScoreCache(Base):
    __tablename__ = "admission_score_cache"

    cache_key = Column(String(256), primary_key=True)  # facility|age_band|w_eff|engine|calibration
    facility_id = Column(String(128), nullable=False, index=True)
    child_age_band = Column(String(2), nullable=False)
    priority_type = Column(String(32), nullable=True)
    waiting_position = Column(Integer, nullable=False)
    waiting_position_original = Column(Integer, nullable=False, default=0)  # as supplied by the caller (0 = none)
    w_eff = Column(Integer, nullable=False)
    region_key = Column(String(32), nullable=False)
    engine_version = Column(String(16), nullable=False)
    calibration_version = Column(String(16), nullable=False)
    payload_json = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
