"""
Gamma-Poisson vacancy model and Negative-Binomial admission probability.

The vacancy rate rho (vacancies per seat-month) gets a Gamma(alpha, beta) posterior:
prior alpha0 = mu_prior * E0, beta0 = E0, updated with N observed vacancies over
E seat-months of exposure. Integrating a Poisson count over that posterior for a future
exposure E_H gives NB(r = alpha, p = beta / (beta + E_H)); the chance of admission within
H months is P(count >= w_eff) = 1 - F_NB(w_eff - 1).

Everything here is pure: no DB, no clock.
"""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Iterable, Mapping, NamedTuple

from scipy.stats import nbinom

from admission.core.clock import as_utc
from admission.core.errors import InvalidModelParametersError
from admission.models.waitlist_snapshot import TurnoverState

HOURS_PER_DAY = 24.0
DAYS_PER_MONTH = 30.0


class PosteriorSource(str, enum.Enum):
    PREBUILT_BLOCK = "prebuilt_block"
    OBSERVED = "observed"
    PRIOR = "prior"


@dataclass(frozen=True)
class GammaPosterior:
    alpha: float
    beta: float
    n: float = 0.0
    exposure: float = 0.0
    source: PosteriorSource = PosteriorSource.PRIOR
    community_adjusted: bool = False

    @property
    def mean(self) -> float:
        return self.alpha / self.beta

    @property
    def variance(self) -> float:
        return self.alpha / (self.beta ** 2)

    @property
    def rho_observed(self) -> float:
        return self.n / self.exposure if self.exposure > 0 else 0.0

    def with_community_signal(self, mentions: float, sources: float, mention_weight: float, source_exposure: float) -> "GammaPosterior":
        return replace(
            self,
            alpha=self.alpha + mentions * mention_weight,
            beta=self.beta + sources * source_exposure,
            community_adjusted=True,
        )


class SnapshotPoint(NamedTuple):
    at: datetime
    enrolled_delta: int
    state: TurnoverState


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def sigmoid(x: float) -> float:
    # Only ever exponentiate a non-positive number
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def probability_to_grade(p: float) -> str:
    if p >= 0.8:
        return "A"
    if p >= 0.6:
        return "B"
    if p >= 0.4:
        return "C"
    if p >= 0.2:
        return "D"
    return "F"


def season_months(horizon: int, start_month: int) -> list[int]:
    """Calendar months covered by a horizon starting at start_month (wraps past December)."""
    return [((start_month - 1 + m) % 12) + 1 for m in range(max(0, horizon))]


def effective_horizon(horizon: int, start_month: int, multipliers: Mapping[int, float]) -> float:
    """Seasonally weighted month count; 0 for non-positive horizons."""
    if horizon <= 0:
        return 0.0
    return sum(multipliers.get(m, 1.0) for m in season_months(horizon, start_month))


def adjusted_waiting_position(waiting_position: float, competition: float, priority_bonus: float) -> int:
    return max(0, math.ceil(waiting_position * competition - priority_bonus))


def prior_posterior(prior_mean: float, prior_exposure: float) -> GammaPosterior:
    return GammaPosterior(alpha=prior_mean * prior_exposure, beta=prior_exposure, source=PosteriorSource.PRIOR)


def accumulate_vacancies(
    points: Iterable[SnapshotPoint],
    capacity_eff: float,
    merge_hours: float = 48.0,
) -> tuple[float, float, int]:
    """
    Walk snapshots oldest first. Exposure grows by capacity_eff * elapsed months between
    neighbours. Confirmed drops open (or extend) a pending event; the pending seats are
    counted once the event is older than merge_hours or enrollment stops falling.
    Returns (N, E_seat_months, points seen).
    """
    n = 0.0
    exposure = 0.0
    pending = 0.0
    event_start: datetime | None = None
    prev_at: datetime | None = None
    count = 0

    for point in points:
        count += 1
        at = as_utc(point.at)
        if prev_at is None:
            prev_at = at
            continue

        delta = point.enrolled_delta or 0
        if point.state is TurnoverState.CONFIRMED and delta < 0:
            if pending == 0:
                event_start = at
            pending += abs(delta)
            hours_open = (at - event_start).total_seconds() / 3600.0 if event_start else 0.0
            if hours_open >= merge_hours:
                n += pending
                pending = 0.0
                event_start = None
        elif delta >= 0 and pending > 0:
            n += pending
            pending = 0.0
            event_start = None

        days = (at - prev_at).total_seconds() / 3600.0 / HOURS_PER_DAY
        exposure += capacity_eff * (days / DAYS_PER_MONTH)
        prev_at = at

    if pending > 0:
        n += pending
    return n, exposure, count


def observed_posterior(
    prior_mean: float,
    prior_exposure: float,
    n: float,
    exposure: float,
) -> GammaPosterior:
    return GammaPosterior(
        alpha=prior_mean * prior_exposure + n,
        beta=prior_exposure + exposure,
        n=n,
        exposure=exposure,
        source=PosteriorSource.OBSERVED,
    )


def validate_nb_params(r: float, p: float) -> None:
    """Reject parameters that would make the NB CDF return NaN or nonsense."""
    if not (math.isfinite(r) and math.isfinite(p)):
        raise InvalidModelParametersError(f"NB parameters must be finite (r={r}, p={p})")
    if r <= 0:
        raise InvalidModelParametersError(f"NB parameter r must be > 0 (r={r})")
    if p <= 0 or p >= 1:
        raise InvalidModelParametersError(f"NB parameter p must be in (0, 1) (p={p})")


def admission_probability(
    posterior: GammaPosterior,
    w_eff: int,
    capacity_eff: float,
    horizon: int,
    start_month: int,
    multipliers: Mapping[int, float],
) -> float:
    """P(at least w_eff vacancies within `horizon` months)."""
    if w_eff == 0:
        return 1.0
    exposure_h = capacity_eff * effective_horizon(horizon, start_month, multipliers)
    r = posterior.alpha
    denom = posterior.beta + exposure_h
    p = posterior.beta / denom if denom else float("nan")
    validate_nb_params(r, p)
    return clamp(1.0 - float(nbinom.cdf(w_eff - 1, r, p)), 0.0, 1.0)


def raw_score(probability: float) -> int:
    """round(100 * P) half-up, clamped to a valid calibration index."""
    return int(clamp(math.floor(100.0 * probability + 0.5), 0, 100))


def calibrated_score(probability: float, table: tuple[int, ...]) -> int:
    return int(clamp(table[raw_score(probability)], 1, 99))


def posterior_confidence(posterior: GammaPosterior) -> float:
    """Low coefficient of variation -> high confidence. For Gamma(alpha, beta), CV = 1/sqrt(alpha)."""
    cv = 1.0 / math.sqrt(posterior.alpha) if posterior.alpha > 0 and posterior.beta > 0 else 1.0
    return round(sigmoid(-cv * 3 + 1), 2)


def months_to_reach(
    probability_at: Callable[[int], float],
    threshold: float,
    max_months: int = 24,
) -> int:
    """Smallest horizon in [1, max_months] whose probability reaches threshold, else max_months."""
    for h in range(1, max_months + 1):
        if probability_at(h) >= threshold:
            return h
    return max_months
