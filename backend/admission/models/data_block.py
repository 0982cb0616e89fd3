"""
Descriptive per-facility blocks: to_pattern rows written by the training aggregator and
community_aggregate rows written by the external community pipeline.
"""
import json

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.sql import func

from admission.db.base import Base


class DataBlock(Base):
    __tablename__ = "data_blocks"

    block_id = Column(String(192), primary_key=True)  # to_<facility>_<year>Q<n> for to_pattern
    block_type = Column(String(64), nullable=False, index=True)
    facility_id = Column(String(128), nullable=False, index=True)
    features_json = Column(Text, nullable=True)
    label_json = Column(Text, nullable=True)
    confidence = Column(Float, nullable=False, default=0.0)
    source_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    last_updated = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def features(self) -> dict:
        if not self.features_json:
            return {}
        try:
            value = json.loads(self.features_json)
        except (TypeError, json.JSONDecodeError):
            return {}
        return value if isinstance(value, dict) else {}
