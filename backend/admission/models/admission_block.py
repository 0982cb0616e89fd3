"""
Prebuilt scoring inputs from the offline block pipeline (vacancy posterior, community signal).
The engine only reads active, unexpired rows.
"""
import json

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.sql import func

from admission.db.base import Base


class AdmissionBlock(Base):
    __tablename__ = "admission_blocks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    facility_id = Column(String(128), nullable=False, index=True)
    block_type = Column(String(64), nullable=False)  # admission_vacancy_to | admission_community_signal
    data_json = Column(Text, nullable=True)
    confidence = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, nullable=False, default=True)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def data(self) -> dict:
        if not self.data_json:
            return {}
        try:
            value = json.loads(self.data_json)
        except (TypeError, json.JSONDecodeError):
            return {}
        return value if isinstance(value, dict) else {}
