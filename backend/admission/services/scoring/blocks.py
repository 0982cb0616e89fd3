"""
Readers for prebuilt scoring inputs: admission blocks (vacancy posterior, community signal)
and community_aggregate data blocks.

Blocks come from an offline pipeline and may be malformed. Readers degrade instead of
raising: a failed query means "no blocks", a vacancy block with unusable Gamma parameters
is rejected so the engine recomputes from snapshots.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admission.core.constants import (
    BLOCK_TYPE_COMMUNITY_AGGREGATE,
    K_ANONYMITY_THRESHOLD,
    MIN_BLOCK_CONFIDENCE,
    MIN_COMMUNITY_SIGNAL_SOURCES,
    MIN_CONFIDENCE_FOR_COMMUNITY,
)
from admission.core.errors import InvalidModelParametersError
from admission.models.admission_block import AdmissionBlock
from admission.models.data_block import DataBlock
from admission.services.scoring.model import GammaPosterior, PosteriorSource, validate_nb_params

logger = logging.getLogger(__name__)

# Used when a vacancy block omits the posterior parameters
DEFAULT_BLOCK_ALPHA = 0.03
DEFAULT_BLOCK_BETA = 3.0


def read_admission_blocks(db: Session, facility_id: str, now: datetime) -> dict[str, list[AdmissionBlock]]:
    """Active, unexpired blocks for a facility grouped by block_type, latest expiry first."""
    try:
        rows = (
            db.query(AdmissionBlock)
            .filter(
                AdmissionBlock.facility_id == facility_id,
                AdmissionBlock.is_active.is_(True),
                AdmissionBlock.valid_until > now,
            )
            .order_by(AdmissionBlock.valid_until.desc(), AdmissionBlock.id.desc())
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Admission blocks read failed facility=%s, computing from snapshots: %s", facility_id, e)
        return {}
    grouped: dict[str, list[AdmissionBlock]] = {}
    for row in rows:
        grouped.setdefault(row.block_type, []).append(row)
    return grouped


def _number(value, default: float | None = None) -> float | None:
    if value is None:
        return default
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _usable(x: float | None) -> bool:
    return x is not None and math.isfinite(x) and x > 0


def _fits_horizons(alpha: float, beta: float, horizon_exposures: Iterable[float]) -> bool:
    """True when NB(alpha, beta / (beta + E_H)) is well defined for every given E_H."""
    for exposure_h in horizon_exposures:
        try:
            validate_nb_params(alpha, beta / (beta + exposure_h))
        except InvalidModelParametersError:
            return False
    return True


def vacancy_block_posterior(
    block: AdmissionBlock | None,
    horizon_exposures: Iterable[float] = (),
) -> GammaPosterior | None:
    """
    Posterior from a prebuilt vacancy block, or None if absent, low-confidence or malformed.
    horizon_exposures are the E_H values the caller will score with; a block whose parameters
    give an invalid NB at any of them is rejected too.
    """
    if block is None or (block.confidence or 0.0) < MIN_BLOCK_CONFIDENCE:
        return None
    data = block.data
    alpha = _number(data.get("alpha_post"), DEFAULT_BLOCK_ALPHA)
    beta = _number(data.get("beta_post"), DEFAULT_BLOCK_BETA)
    if not (_usable(alpha) and _usable(beta) and _fits_horizons(alpha, beta, horizon_exposures)):
        logger.warning(
            "Rejecting vacancy block facility=%s id=%s: alpha_post=%r beta_post=%r",
            block.facility_id, block.id, data.get("alpha_post"), data.get("beta_post"),
        )
        return None
    n = _number(data.get("N"), 0.0)
    exposure = _number(data.get("E_seat_months"), 0.0)
    return GammaPosterior(
        alpha=alpha,
        beta=beta,
        n=n if n is not None and math.isfinite(n) else 0.0,
        exposure=exposure if exposure is not None and math.isfinite(exposure) else 0.0,
        source=PosteriorSource.PREBUILT_BLOCK,
    )


@dataclass(frozen=True)
class CommunitySignal:
    source_count: int
    to_mention_count: int
    confidence: float
    avg_reported_wait_months: float | None = None
    competition_level: str | None = None
    avg_sentiment: float = 0.0

    @property
    def can_adjust_posterior(self) -> bool:
        return self.source_count >= MIN_COMMUNITY_SIGNAL_SOURCES and self.to_mention_count > 0

    @property
    def can_surface(self) -> bool:
        return self.source_count >= K_ANONYMITY_THRESHOLD


def community_signal(block: AdmissionBlock | None) -> CommunitySignal | None:
    if block is None or (block.confidence or 0.0) < MIN_BLOCK_CONFIDENCE:
        return None
    data = block.data
    if not data.get("intel_enriched"):
        return None
    sources = _number(data.get("intel_source_count"), 0.0) or 0.0
    mentions = _number(data.get("to_mention_count"), 0.0) or 0.0
    if not (math.isfinite(sources) and math.isfinite(mentions)):
        return None
    wait = _number(data.get("avg_reported_wait_months"))
    sentiment = _number(data.get("avg_sentiment"), 0.0)
    level = data.get("competition_level")
    return CommunitySignal(
        source_count=max(0, int(sources)),
        to_mention_count=max(0, int(mentions)),
        confidence=float(block.confidence),
        avg_reported_wait_months=wait if wait is not None and math.isfinite(wait) else None,
        competition_level=str(level) if level else None,
        avg_sentiment=sentiment if sentiment is not None and math.isfinite(sentiment) else 0.0,
    )


def read_community_aggregates(db: Session, facility_id: str) -> list[DataBlock]:
    """community_aggregate blocks that meet the confidence floor and k-anonymity threshold."""
    try:
        rows = (
            db.query(DataBlock)
            .filter(
                DataBlock.facility_id == facility_id,
                DataBlock.block_type == BLOCK_TYPE_COMMUNITY_AGGREGATE,
                DataBlock.is_active.is_(True),
                DataBlock.confidence >= MIN_CONFIDENCE_FOR_COMMUNITY,
            )
            .all()
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Community aggregate read failed facility=%s: %s", facility_id, e)
        return []
    return [r for r in rows if (r.source_count or 0) >= K_ANONYMITY_THRESHOLD]


def first_vacancy_posterior(
    blocks: Iterable[AdmissionBlock],
    horizon_exposures: Iterable[float] = (),
) -> tuple[Optional[AdmissionBlock], Optional[GammaPosterior]]:
    """Newest usable vacancy block and its posterior; an unusable newer block falls through to older ones."""
    exposures = tuple(horizon_exposures)
    for block in blocks:
        posterior = vacancy_block_posterior(block, exposures)
        if posterior is not None:
            return block, posterior
    return None, None


def first_community_signal(blocks: Iterable[AdmissionBlock]) -> Optional[CommunitySignal]:
    for block in blocks:
        signal = community_signal(block)
        if signal is not None:
            return signal
    return None
