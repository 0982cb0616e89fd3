"""Confirmed turnover (seat freed) alerts. At most one per facility per cooldown window."""
from sqlalchemy import Column, DateTime, Float, Index, Integer, String

from admission.db.base import Base


class ToAlert(Base):
    __tablename__ = "to_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    facility_id = Column(String(128), nullable=False, index=True)
    facility_name = Column(String(256), nullable=True)
    age_class = Column(String(16), nullable=False, default="all")
    detected_at = Column(DateTime(timezone=True), nullable=False)
    estimated_slots = Column(Integer, nullable=False, default=1)
    confidence = Column(Float, nullable=False)
    source = Column(String(32), nullable=False)  # snapshot_diff | public_api
    prev_enrolled = Column(Integer, nullable=True)
    curr_enrolled = Column(Integer, nullable=True)

    __table_args__ = (Index("ix_to_alerts_facility_detected_at", "facility_id", "detected_at"),)
