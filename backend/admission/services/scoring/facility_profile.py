"""
Normalized view of a catalog facility for one scoring call.

Defaulting rules, applied once:
  - name: catalog name, else "daycare"
  - capacity_total: catalog value, else 0 (negative treated as 0)
  - capacity_by_class: decoded JSON map, non-numeric entries dropped
  - region_key: resolved from address / coordinates, else "default"
  - capacity_eff: per-class capacity for the band if present, else total * band ratio,
    floored at 1 so a zero-capacity facility still yields a proper distribution
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from admission.core.constants import DEFAULT_FACILITY_NAME
from admission.core.regions import resolve_region
from admission.models.facility import parse_capacity_by_class

NORMALIZATION_BY_CLASS = "by_class"
NORMALIZATION_TOTAL = "total_facility"


@dataclass(frozen=True)
class FacilityProfile:
    facility_id: str
    name: str
    capacity_total: int
    address: str
    region_key: str
    capacity_by_class: dict[str, int] = field(default_factory=dict)

    def effective_capacity(self, age_band: str, ratios: Mapping[str, float]) -> tuple[float, str]:
        """(capacity_eff, normalization) for an age band; capacity_eff is always >= 1."""
        by_class = self.capacity_by_class.get(age_band)
        if by_class is not None:
            return max(1.0, float(by_class)), NORMALIZATION_BY_CLASS
        return max(1.0, self.capacity_total * ratios.get(age_band, 0.0)), NORMALIZATION_TOTAL


def build_facility_profile(row) -> FacilityProfile:
    """row: anything with facility_id, name, capacity_total, capacity_by_class_json, address (lat/lng optional)."""
    capacity = row.capacity_total or 0
    address = row.address or ""
    return FacilityProfile(
        facility_id=row.facility_id,
        name=row.name or DEFAULT_FACILITY_NAME,
        capacity_total=max(0, int(capacity)),
        address=address,
        region_key=resolve_region(address, getattr(row, "lat", None), getattr(row, "lng", None)),
        capacity_by_class=parse_capacity_by_class(row.capacity_by_class_json),
    )
