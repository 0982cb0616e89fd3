"""
Admission scoring engine.

For one facility and age band: Gamma posterior over the seat-month vacancy rate (prebuilt
block, else trailing 12 months of snapshots on top of a regional prior), optional community
nudge, Negative-Binomial probability of admission within the score horizon, calibrated
1-99 score, A-F grade, confidence from posterior dispersion, median/80th wait and evidence.
"""
from __future__ import annotations

import logging
import math
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from admission.config import settings
from admission.core.clock import SYSTEM_CLOCK, Clock, local_month, shift_months
from admission.core.constants import (
    BLOCK_TYPE_COMMUNITY_SIGNAL,
    BLOCK_TYPE_VACANCY,
    K_ANONYMITY_THRESHOLD,
    SCORING_LOOKBACK_MONTHS,
)
from admission.core.errors import FacilityNotFoundError, InvalidScoreInputError
from admission.core.regions import region_label
from admission.models.facility import Facility
from admission.models.waitlist_snapshot import TurnoverState, WaitlistSnapshot
from admission.services.scoring.blocks import (
    CommunitySignal,
    first_community_signal,
    first_vacancy_posterior,
    read_admission_blocks,
    read_community_aggregates,
)
from admission.services.scoring.cache import cache_key, read_cached_score, write_cached_score
from admission.services.scoring.facility_profile import FacilityProfile, build_facility_profile
from admission.services.scoring.model import (
    GammaPosterior,
    PosteriorSource,
    SnapshotPoint,
    accumulate_vacancies,
    adjusted_waiting_position,
    admission_probability,
    calibrated_score,
    effective_horizon,
    months_to_reach,
    observed_posterior,
    posterior_confidence,
    prior_posterior,
    probability_to_grade,
    season_months,
)
from admission.services.scoring.tables import DEFAULT_ENGINE_CONFIG, EngineConfig
from admission.services.scoring.types import AdmissionScoreQuery, AdmissionScoreResult, EvidenceCard

logger = logging.getLogger(__name__)

MEDIAN_THRESHOLD = 0.5
P80_THRESHOLD = 0.8


def _half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _season_phase(month: int) -> str:
    if month <= 3:
        return "new-term peak"
    if 7 <= month <= 9:
        return "second-half intake"
    return "regular period"


class AdmissionScoringEngine:
    def __init__(
        self,
        db: Session,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        clock: Clock = SYSTEM_CLOCK,
        timezone: Optional[str] = None,
    ):
        self.db = db
        self.config = config
        self.clock = clock
        self.timezone = timezone or settings.scoring_timezone

    def score(
        self,
        facility_id: str,
        age_band: str,
        priority_type: str = "general",
        waiting_position: Optional[int] = None,
    ) -> AdmissionScoreResult:
        cfg = self.config
        now = self.clock.now()

        profile = self._load_facility(facility_id)
        capacity_eff, normalization = profile.effective_capacity(age_band, cfg.age_band_capacity_ratio)
        region = profile.region_key

        position = waiting_position or self._latest_waitlist_position(facility_id, age_band)
        if not position:
            position = _half_up(capacity_eff * 2)
        w_eff = adjusted_waiting_position(position, cfg.competition(region), cfg.bonus(priority_type))

        key = cache_key(facility_id, age_band, w_eff, cfg.engine_version, cfg.calibration_version)
        cached = read_cached_score(self.db, key, waiting_position, now)
        if cached is not None:
            return cached

        evidence: list[EvidenceCard] = []
        blocks = read_admission_blocks(self.db, facility_id, now)
        start_month = local_month(now, self.timezone)
        horizon = cfg.score_horizon_months

        # Shortest and longest horizons bound p = beta / (beta + E_H) from above and below
        horizon_exposures = [
            capacity_eff * effective_horizon(months, start_month, cfg.seasonal_multiplier)
            for months in (1, cfg.max_wait_months)
        ]
        block, posterior = first_vacancy_posterior(blocks.get(BLOCK_TYPE_VACANCY, []), horizon_exposures)
        if posterior is not None:
            logger.info("Using prebuilt vacancy block facility=%s id=%s", facility_id, block.id)
            snapshot_count = 6 if posterior.n > 0 else 1
            evidence.append(self._prebuilt_evidence(posterior, block.confidence, snapshot_count))
        else:
            prior_mean = cfg.prior_mean(region, age_band)
            posterior, snapshot_count = self._posterior_from_snapshots(facility_id, capacity_eff, prior_mean, now)
            evidence.append(self._snapshot_evidence(posterior, snapshot_count, capacity_eff, prior_mean, normalization))

        signal = first_community_signal(blocks.get(BLOCK_TYPE_COMMUNITY_SIGNAL, []))
        posterior = self._apply_community_signal(posterior, signal)

        def probability_at(months: int) -> float:
            return admission_probability(
                posterior, w_eff, capacity_eff, months, start_month, cfg.seasonal_multiplier
            )

        p_horizon = probability_at(horizon)

        if signal is not None and signal.can_surface:
            evidence.append(self._signal_evidence(signal))
        evidence.append(self._seasonal_evidence(start_month, horizon, capacity_eff))
        if not any(card["type"] == "community_aggregate" for card in evidence):
            card = self._community_aggregate_evidence(facility_id)
            if card is not None:
                evidence.append(card)

        admission_score = calibrated_score(p_horizon, cfg.calibration_for(region))
        confidence = posterior_confidence(posterior)
        median = months_to_reach(probability_at, MEDIAN_THRESHOLD, cfg.max_wait_months)
        p80 = months_to_reach(probability_at, P80_THRESHOLD, cfg.max_wait_months)

        evidence.append(
            {
                "type": "similar_cases",
                "summary": (
                    f"Waiting position {position} ({w_eff} after priority adjustment), "
                    f"{posterior.mean * capacity_eff * horizon:.0f} expected vacancies in {horizon} months"
                ),
                "source_count": snapshot_count or 1,
                "confidence": 0.75 if snapshot_count >= 3 else 0.4,
                "data_points": {
                    "sample_size": snapshot_count,
                    "avg_wait_months": median,
                    "success_rate": p_horizon,
                    "definition": f"{region_label(region)}/age {age_band}/capacity {_half_up(capacity_eff)}",
                },
            }
        )

        probability = round(p_horizon, 2)
        result: AdmissionScoreResult = {
            "facility_id": facility_id,
            "facility_name": profile.name,
            "probability": probability,
            "admission_score": admission_score,
            "grade": probability_to_grade(probability),
            "confidence": confidence,
            "estimated_months_median": median,
            "estimated_months_80th": p80,
            "evidence": evidence,
            "region_key": region,
            "engine_version": cfg.engine_version,
            "calculated_at": now.isoformat(),
        }

        write_cached_score(
            self.db,
            key,
            result,
            child_age_band=age_band,
            priority_type=priority_type,
            waiting_position=position,
            waiting_position_original=waiting_position,
            w_eff=w_eff,
            calibration_version=cfg.calibration_version,
            now=now,
        )
        return result

    def _load_facility(self, facility_id: str) -> FacilityProfile:
        row = (
            self.db.query(
                Facility.facility_id,
                Facility.name,
                Facility.capacity_total,
                Facility.capacity_by_class_json,
                Facility.address,
                Facility.lat,
                Facility.lng,
            )
            .filter(Facility.facility_id == facility_id)
            .first()
        )
        if row is None:
            raise FacilityNotFoundError(facility_id)
        return build_facility_profile(row)

    def _latest_waitlist_position(self, facility_id: str, age_band: str) -> int:
        latest = (
            self.db.query(WaitlistSnapshot)
            .filter(WaitlistSnapshot.facility_id == facility_id)
            .order_by(WaitlistSnapshot.snapshot_at.desc(), WaitlistSnapshot.id.desc())
            .first()
        )
        if latest is None:
            return 0
        value = latest.waitlist_by_class.get(age_band)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            return 0
        return max(0, _half_up(value))

    def _posterior_from_snapshots(
        self, facility_id: str, capacity_eff: float, prior_mean: float, now
    ) -> tuple[GammaPosterior, int]:
        since = shift_months(now, -SCORING_LOOKBACK_MONTHS)
        rows = (
            self.db.query(
                WaitlistSnapshot.snapshot_at,
                WaitlistSnapshot.enrolled_delta,
                WaitlistSnapshot.to_state,
            )
            .filter(WaitlistSnapshot.facility_id == facility_id, WaitlistSnapshot.snapshot_at >= since)
            .order_by(WaitlistSnapshot.snapshot_at, WaitlistSnapshot.id)
            .all()
        )
        points = [SnapshotPoint(r.snapshot_at, r.enrolled_delta or 0, TurnoverState(r.to_state)) for r in rows]
        n, exposure, count = accumulate_vacancies(points, capacity_eff, self.config.event_merge_hours)
        if count < 2:
            return prior_posterior(prior_mean, self.config.prior_exposure), count
        return observed_posterior(prior_mean, self.config.prior_exposure, n, exposure), count

    def _apply_community_signal(
        self, posterior: GammaPosterior, signal: Optional[CommunitySignal]
    ) -> GammaPosterior:
        # A prebuilt vacancy block already folds community reports in
        if posterior.source is PosteriorSource.PREBUILT_BLOCK:
            return posterior
        if signal is None or not signal.can_adjust_posterior:
            return posterior
        return posterior.with_community_signal(
            signal.to_mention_count,
            signal.source_count,
            self.config.community_mention_weight,
            self.config.community_source_exposure,
        )

    def _prebuilt_evidence(self, posterior: GammaPosterior, block_confidence: float, snapshot_count: int) -> EvidenceCard:
        return {
            "type": "to_snapshot",
            "summary": (
                f"[prebuilt] {posterior.n:g} vacancies over {posterior.exposure:.1f} seat-months "
                f"(rho={posterior.rho_observed:.4f})"
            ),
            "source_count": snapshot_count,
            "confidence": float(block_confidence),
            "data_points": {
                "N": posterior.n,
                "E_seat_months": posterior.exposure,
                "rho_observed": posterior.rho_observed,
                "method": "gamma_posterior",
                "alpha_post": posterior.alpha,
                "beta_post": posterior.beta,
            },
        }

    def _snapshot_evidence(
        self,
        posterior: GammaPosterior,
        snapshot_count: int,
        capacity_eff: float,
        prior_mean: float,
        normalization: str,
    ) -> EvidenceCard:
        if posterior.source is PosteriorSource.PRIOR:
            return {
                "type": "to_snapshot",
                "summary": (
                    f"Not enough snapshots ({snapshot_count}); prior estimate "
                    f"(rho_prior={prior_mean:.4f}, E0={self.config.prior_exposure:g})"
                ),
                "source_count": 1,
                "confidence": 0.3,
                "data_points": {
                    "N": 0,
                    "E_seat_months": 0,
                    "rho_observed": 0,
                    "method": "gamma_prior",
                    "alpha_post": posterior.alpha,
                    "beta_post": posterior.beta,
                },
            }
        rho = posterior.rho_observed
        return {
            "type": "to_snapshot",
            "summary": (
                f"Observed {posterior.exposure:.1f} seat-months, {posterior.n:g} vacancies "
                f"(rho={rho:.4f}/seat-month, {rho * capacity_eff:.1f} per month at capacity {_half_up(capacity_eff)})"
            ),
            "source_count": snapshot_count,
            "confidence": 0.85 if snapshot_count >= 6 else 0.55,
            "data_points": {
                "N": posterior.n,
                "E_seat_months": posterior.exposure,
                "rho_observed": rho,
                "method": "gamma_posterior",
                "alpha_post": posterior.alpha,
                "beta_post": posterior.beta,
                "age_band_normalization": normalization,
            },
        }

    def _signal_evidence(self, signal: CommunitySignal) -> EvidenceCard:
        details = [f"{signal.to_mention_count} vacancy mentions"]
        if signal.avg_reported_wait_months:
            details.append(f"avg wait {signal.avg_reported_wait_months:g} months")
        if signal.competition_level:
            details.append(f"competition {signal.competition_level}")
        return {
            "type": "community_aggregate",
            "summary": f"Community reports from {signal.source_count} sources ({', '.join(details)})",
            "source_count": signal.source_count,
            "confidence": signal.confidence,
            "data_points": {
                "total_sources": signal.source_count,
                "avg_wait_months": signal.avg_reported_wait_months,
                "groups": signal.to_mention_count,
                "avg_sentiment": signal.avg_sentiment,
                "k_threshold": K_ANONYMITY_THRESHOLD,
            },
        }

    def _seasonal_evidence(self, start_month: int, horizon: int, capacity_eff: float) -> EvidenceCard:
        multipliers = self.config.seasonal_multiplier
        months = season_months(horizon, start_month)
        h_eff = effective_horizon(horizon, start_month, multipliers)
        return {
            "type": "seasonal_factor",
            "summary": (
                f"Months {months[0]}-{months[-1]} cumulative intensity {h_eff:.1f} "
                f"(avg {h_eff / horizon:.2f}/month, {_season_phase(start_month)})"
            ),
            "source_count": 1,
            "confidence": 0.95,
            "data_points": {
                "months_ahead": months,
                "H_eff": h_eff,
                "E_H": capacity_eff * h_eff,
                "multipliers": [multipliers.get(m, 1.0) for m in months],
            },
        }

    def _community_aggregate_evidence(self, facility_id: str) -> Optional[EvidenceCard]:
        groups = read_community_aggregates(self.db, facility_id)
        if not groups:
            return None
        total_sources = sum(g.source_count or 0 for g in groups)
        sentiments = []
        for g in groups:
            value = g.features.get("avg_sentiment", 0)
            sentiments.append(float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0.0)
        avg_sentiment = sum(sentiments) / len(groups)
        return {
            "type": "community_aggregate",
            "summary": (
                f"{total_sources} anonymous review signals aggregated "
                f"({len(groups)} groups meeting k>={K_ANONYMITY_THRESHOLD}, avg sentiment {avg_sentiment:+.2f})"
            ),
            "source_count": total_sources,
            "confidence": min(0.8, 0.5 + len(groups) * 0.05),
            "data_points": {
                "groups": len(groups),
                "total_sources": total_sources,
                "avg_sentiment": avg_sentiment,
                "k_threshold": K_ANONYMITY_THRESHOLD,
            },
        }


def calculate_admission_score(
    db: Session,
    facility_id: str,
    child_age_band: str,
    priority_type: str = "general",
    waiting_position: Optional[int] = None,
    *,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    clock: Clock = SYSTEM_CLOCK,
) -> AdmissionScoreResult:
    """Validate inputs and score. Raises InvalidScoreInputError, FacilityNotFoundError, InvalidModelParametersError."""
    try:
        query = AdmissionScoreQuery(
            facility_id=facility_id,
            child_age_band=child_age_band,
            priority_type=priority_type,
            waiting_position=waiting_position,
        )
    except ValidationError as e:
        raise InvalidScoreInputError(f"Invalid admission score input: {e.errors()[0]['msg']}") from e
    engine = AdmissionScoringEngine(db, config=config, clock=clock)
    return engine.score(query.facility_id, query.child_age_band, query.priority_type, query.waiting_position)
