"""
Append-only enrollment snapshots, one row per facility per collection run.

to_state is the two-stage turnover flag: unchanged -> candidate (enrollment dropped)
-> confirmed (verified against the next settled snapshot). Rows are never deleted; the
only in-place update is candidate -> confirmed.
"""
import enum
import json

from sqlalchemy import Column, DateTime, Float, Index, Integer, String, Text

from admission.db.base import Base


class TurnoverState(str, enum.Enum):
    UNCHANGED = "unchanged"
    CANDIDATE = "candidate"
    CONFIRMED = "confirmed"


class WaitlistSnapshot(Base):
    __tablename__ = "waitlist_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    facility_id = Column(String(128), nullable=False, index=True)
    snapshot_at = Column(DateTime(timezone=True), nullable=False)
    current_enrolled = Column(Integer, nullable=False, default=0)
    waitlist_total = Column(Integer, nullable=False, default=0)
    waitlist_by_class_json = Column(Text, nullable=True)  # {"0": 3, "1": 6, ...}
    enrolled_delta = Column(Integer, nullable=False, default=0)  # vs previous snapshot; negative = seats freed
    to_state = Column(String(16), nullable=False, default=TurnoverState.UNCHANGED.value, index=True)
    source = Column(String(32), nullable=False)  # places_sync | public_api | manual
    confidence = Column(Float, nullable=False, default=0.7)

    __table_args__ = (Index("ix_waitlist_snapshots_facility_snapshot_at", "facility_id", "snapshot_at"),)

    @property
    def turnover_state(self) -> TurnoverState:
        return TurnoverState(self.to_state)

    @property
    def waitlist_by_class(self) -> dict[str, int]:
        if not self.waitlist_by_class_json:
            return {}
        try:
            data = json.loads(self.waitlist_by_class_json)
        except (TypeError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}
