"""Childcare facility catalog row. Owned by the external catalog; the core only reads it."""
import json

from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.sql import func

from admission.db.base import Base


class Facility(Base):
    __tablename__ = "facilities"

    facility_id = Column(String(128), primary_key=True)
    name = Column(String(256), nullable=True)
    capacity_total = Column(Integer, nullable=True)
    capacity_by_class_json = Column(Text, nullable=True)  # {"0": 5, "1": 10, ...}
    current_enrolled = Column(Integer, nullable=True)
    address = Column(String(512), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def capacity_by_class(self) -> dict[str, int]:
        return parse_capacity_by_class(self.capacity_by_class_json)


def parse_capacity_by_class(raw: str | None) -> dict[str, int]:
    """Decode capacity_by_class_json; bad JSON or non-numeric entries are dropped."""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return {}
    if not isinstance(data, dict):
        return {}
    out: dict[str, int] = {}
    for band, cap in data.items():
        if isinstance(cap, (int, float)) and not isinstance(cap, bool):
            out[str(band)] = int(cap)
    return out
