"""
Region definitions and address -> region key resolution.

Single place for region keys, display labels and match keywords. Used by the snapshot
pipeline, the training aggregator and the scoring engine.

Resolution order:
  1. Keyword match against the address (REGION_DEFS order: narrowest region first)
  2. Bounding box check against lat/lng when the address did not match
  3. None
"""
from __future__ import annotations

from dataclasses import dataclass

DEFAULT_REGION = "default"
# Shown for addresses outside every known region; must never be the internal key
DEFAULT_REGION_LABEL = "other region"


@dataclass(frozen=True)
class RegionDef:
    key: str
    label: str
    keywords: tuple[str, ...]
    # (min_lng, min_lat, max_lng, max_lat)
    bbox: tuple[float, float, float, float] | None = None


# "wirye" must come before "seongnam": Wirye addresses contain both names.
REGION_DEFS: tuple[RegionDef, ...] = (
    RegionDef(
        key="wirye",
        label="Wirye",
        keywords=("위례", "Wirye"),
        bbox=(127.125, 37.465, 127.155, 37.495),
    ),
    RegionDef(key="bundang", label="Bundang-gu", keywords=("분당구", "분당", "Bundang")),
    RegionDef(key="gangnam", label="Gangnam-gu", keywords=("강남구", "Gangnam-gu")),
    RegionDef(key="seocho", label="Seocho-gu", keywords=("서초구", "Seocho-gu")),
    RegionDef(key="songpa", label="Songpa-gu", keywords=("송파구", "Songpa-gu")),
    RegionDef(key="seongnam", label="Seongnam-si", keywords=("성남시", "성남", "Seongnam")),
)

REGION_MAP: dict[str, RegionDef] = {r.key: r for r in REGION_DEFS}
REGION_KEYS: tuple[str, ...] = tuple(r.key for r in REGION_DEFS) + (DEFAULT_REGION,)


def extract_region(
    address: str | None = None,
    lat: float | None = None,
    lng: float | None = None,
) -> str | None:
    """Return the region key for an address and/or coordinates, or None if nothing matched."""
    if address:
        for region in REGION_DEFS:
            for kw in region.keywords:
                if kw in address:
                    return region.key

    if lat is not None and lng is not None:
        for region in REGION_DEFS:
            if region.bbox is None:
                continue
            min_lng, min_lat, max_lng, max_lat = region.bbox
            if min_lng <= lng <= max_lng and min_lat <= lat <= max_lat:
                return region.key

    return None


def resolve_region(address: str | None = None, lat: float | None = None, lng: float | None = None) -> str:
    """Like extract_region but unmatched input maps to DEFAULT_REGION."""
    return extract_region(address, lat, lng) or DEFAULT_REGION


def region_label(key: str | None) -> str:
    region = REGION_MAP.get(key or "")
    return region.label if region else DEFAULT_REGION_LABEL
