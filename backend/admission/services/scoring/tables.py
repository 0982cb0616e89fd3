"""
Fixed lookup tables for the admission scoring engine.

Bundled into one frozen EngineConfig so alternate calibration sets can be passed to an
engine instance (tests, backtests) without touching module state. engine_version and
calibration_version are part of every cache key: bump one whenever a table changes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from admission.core.regions import DEFAULT_REGION

CALIBRATION_SIZE = 101  # raw scores 0..100

# Gamma prior mean: vacancies per seat-month, by region then age band
GAMMA_PRIOR_MEANS: dict[str, dict[str, float]] = {
    "gangnam": {"0": 0.005, "1": 0.007, "2": 0.008, "3": 0.010, "4": 0.012, "5": 0.012},
    "seocho": {"0": 0.006, "1": 0.008, "2": 0.009, "3": 0.011, "4": 0.012, "5": 0.012},
    "bundang": {"0": 0.007, "1": 0.008, "2": 0.010, "3": 0.012, "4": 0.013, "5": 0.013},
    "wirye": {"0": 0.007, "1": 0.009, "2": 0.010, "3": 0.012, "4": 0.013, "5": 0.013},
    "seongnam": {"0": 0.008, "1": 0.009, "2": 0.011, "3": 0.012, "4": 0.014, "5": 0.014},
    "songpa": {"0": 0.006, "1": 0.008, "2": 0.009, "3": 0.011, "4": 0.012, "5": 0.012},
    DEFAULT_REGION: {"0": 0.008, "1": 0.010, "2": 0.011, "3": 0.012, "4": 0.015, "5": 0.015},
}

# Share of total capacity per age band when the facility has no per-class capacity
AGE_BAND_CAPACITY_RATIO: dict[str, float] = {
    "0": 0.10, "1": 0.15, "2": 0.20, "3": 0.20, "4": 0.20, "5": 0.15,
}

# Calendar month -> vacancy intensity (new term peak in Feb/Mar, summer dip)
SEASONAL_MULTIPLIER: dict[int, float] = {
    1: 1.1, 2: 1.3, 3: 1.5,
    4: 1.05, 5: 1.0, 6: 0.95,
    7: 0.9, 8: 1.05, 9: 1.15,
    10: 1.0, 11: 1.05, 12: 1.15,
}

# Waiting position is inflated by local competition
REGION_COMPETITION: dict[str, float] = {
    "gangnam": 1.4,
    "seocho": 1.35,
    "bundang": 1.3,
    "wirye": 1.3,
    "seongnam": 1.2,
    "songpa": 1.3,
    DEFAULT_REGION: 1.15,
}

# Positions subtracted for priority admission categories
PRIORITY_BONUS: dict[str, int] = {
    "disability": 8,
    "single_parent": 7,
    "multi_child": 5,
    "dual_income": 3,
    "sibling": 4,
    "low_income": 6,
    "general": 0,
}

IDENTITY_CALIBRATION: tuple[int, ...] = tuple(min(99, max(1, i)) for i in range(CALIBRATION_SIZE))


def _freeze(mapping: Mapping) -> Mapping:
    return MappingProxyType(
        {k: _freeze(v) if isinstance(v, Mapping) else v for k, v in mapping.items()}
    )


@dataclass(frozen=True)
class EngineConfig:
    engine_version: str = "v1.7.0"
    calibration_version: str = "v1"
    # Prior strength in pseudo seat-months
    prior_exposure: float = 3.0
    # Community TO mention counts as this fraction of an observed event
    community_mention_weight: float = 0.3
    community_source_exposure: float = 0.5
    # Consecutive confirmed drops within this window count as one event
    event_merge_hours: float = 48.0
    score_horizon_months: int = 6
    max_wait_months: int = 24
    gamma_prior_means: Mapping[str, Mapping[str, float]] = field(default_factory=lambda: _freeze(GAMMA_PRIOR_MEANS))
    age_band_capacity_ratio: Mapping[str, float] = field(default_factory=lambda: _freeze(AGE_BAND_CAPACITY_RATIO))
    seasonal_multiplier: Mapping[int, float] = field(default_factory=lambda: _freeze(SEASONAL_MULTIPLIER))
    region_competition: Mapping[str, float] = field(default_factory=lambda: _freeze(REGION_COMPETITION))
    priority_bonus: Mapping[str, int] = field(default_factory=lambda: _freeze(PRIORITY_BONUS))
    calibration: Mapping[str, tuple[int, ...]] = field(
        default_factory=lambda: MappingProxyType(
            {key: IDENTITY_CALIBRATION for key in REGION_COMPETITION}
        )
    )

    def __post_init__(self) -> None:
        if DEFAULT_REGION not in self.calibration:
            raise ValueError("calibration must include the default region")
        for region, table in self.calibration.items():
            if len(table) != CALIBRATION_SIZE:
                raise ValueError(
                    f"calibration table for {region!r} has {len(table)} entries, expected {CALIBRATION_SIZE}"
                )
        if DEFAULT_REGION not in self.gamma_prior_means:
            raise ValueError("gamma_prior_means must include the default region")

    def prior_mean(self, region: str, age_band: str) -> float:
        by_band = self.gamma_prior_means.get(region)
        if by_band is not None and age_band in by_band:
            return by_band[age_band]
        return self.gamma_prior_means[DEFAULT_REGION][age_band]

    def competition(self, region: str) -> float:
        return self.region_competition.get(region, self.region_competition.get(DEFAULT_REGION, 1.0))

    def bonus(self, priority_type: str) -> int:
        return self.priority_bonus.get(priority_type, 0)

    def calibration_for(self, region: str) -> tuple[int, ...]:
        return self.calibration.get(region) or self.calibration[DEFAULT_REGION]


DEFAULT_ENGINE_CONFIG = EngineConfig()
