"""
Risk and trend statistics.

This module provides:
- Empirical exceedance probabilities over yearly indicator values
- Ordinary least squares trend and the Mann-Kendall rank trend test
- A blended confidence score for an analysis

The normal CDF used by Mann-Kendall is computed from the Abramowitz &
Stegun 7.1.26 approximation of erf (max error 1.5e-7).
"""

import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from agroclim.core.exceptions import InvalidArgument
from agroclim.schemas.analysis import MannKendallResult, OLSTrend, ProbabilityRecord
from agroclim.schemas.weather import Observation
from agroclim.utils.aggregation import finite_values
from agroclim.utils.phase import slice_by_phase

# Abramowitz & Stegun 7.1.26 coefficients
_ERF_A1 = 0.254829592
_ERF_A2 = -0.284496736
_ERF_A3 = 1.421413741
_ERF_A4 = -1.453152027
_ERF_A5 = 1.061405429
_ERF_P = 0.3275911

ARROW_UP = "↑"
ARROW_DOWN = "↓"
ARROW_FLAT = "→"


def empirical_probability(
    values: Iterable[Optional[float]],
    predicate: Callable[[float], bool],
) -> ProbabilityRecord:
    """
    Share of finite values satisfying ``predicate``.

    Example:
        >>> empirical_probability([0, 1, 2, 3, 4], lambda v: v >= 3)
        ProbabilityRecord(probability=0.4, sample_size=5, occurrences=2)
    """
    samples = finite_values(values)
    if not samples:
        return ProbabilityRecord(probability=None, sample_size=0, occurrences=0)
    occurrences = sum(1 for v in samples if predicate(v))
    return ProbabilityRecord(
        probability=occurrences / len(samples),
        sample_size=len(samples),
        occurrences=occurrences,
    )


def probability_below(values: Iterable[Optional[float]], threshold: float) -> ProbabilityRecord:
    """Probability that a value is at or below ``threshold``."""
    return empirical_probability(values, lambda v: v <= threshold)


def probability_above(values: Iterable[Optional[float]], threshold: float) -> ProbabilityRecord:
    """Probability that a value is at or above ``threshold``."""
    return empirical_probability(values, lambda v: v >= threshold)


def linear_trend(xs: Sequence[Optional[float]], ys: Sequence[Optional[float]]) -> Optional[OLSTrend]:
    """
    Ordinary least squares fit of ys against xs.

    Only pairs where both values are finite are used.

    Returns:
        Slope (4 dp), intercept (2 dp) and r2 (3 dp), or None with fewer
        than 2 valid pairs or a constant x

    Raises:
        InvalidArgument: If xs and ys differ in length
    """
    if len(xs) != len(ys):
        raise InvalidArgument("linear_trend requires sequences of the same length")

    points = [
        (float(x), float(y))
        for x, y in zip(xs, ys)
        if x is not None and y is not None and math.isfinite(x) and math.isfinite(y)
    ]
    if len(points) < 2:
        return None

    n = len(points)
    sum_x = sum(x for x, _ in points)
    sum_y = sum(y for _, y in points)
    sum_xy = sum(x * y for x, y in points)
    sum_xx = sum(x * x for x, _ in points)

    denominator = n * sum_xx - sum_x ** 2
    if denominator == 0:
        return None

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    mean_y = sum_y / n
    total_variance = sum((y - mean_y) ** 2 for _, y in points)
    explained_variance = sum((slope * x + intercept - mean_y) ** 2 for x, _ in points)
    r2 = 0.0 if total_variance == 0 else explained_variance / total_variance

    return OLSTrend(slope=round(slope, 4), intercept=round(intercept, 2), r2=round(r2, 3))


def erf(x: float) -> float:
    """Error function (Abramowitz & Stegun 7.1.26)."""
    sign = -1.0 if x < 0 else 1.0
    x = abs(x)
    t = 1.0 / (1.0 + _ERF_P * x)
    poly = ((((_ERF_A5 * t + _ERF_A4) * t + _ERF_A3) * t + _ERF_A2) * t + _ERF_A1) * t
    return sign * (1.0 - poly * math.exp(-x * x))


def normal_cdf(value: float) -> float:
    return 0.5 * (1.0 + erf(value / math.sqrt(2.0)))


def mann_kendall(values: Iterable[Optional[float]]) -> Optional[MannKendallResult]:
    """
    Mann-Kendall monotonic trend test.

    Uses the normal approximation with continuity correction and no
    tie correction.

    Returns:
        Kendall's tau (3 dp) and the two-sided p-value (4 dp), or None
        with fewer than 3 finite values
    """
    samples = finite_values(values)
    n = len(samples)
    if n < 3:
        return None

    s = 0
    for i in range(n - 1):
        for j in range(i + 1, n):
            diff = samples[j] - samples[i]
            if diff > 0:
                s += 1
            elif diff < 0:
                s -= 1

    variance = n * (n - 1) * (2 * n + 5) / 18
    if s > 0:
        z = (s - 1) / math.sqrt(variance)
    elif s < 0:
        z = (s + 1) / math.sqrt(variance)
    else:
        z = 0.0

    tau = s / (0.5 * n * (n - 1))
    p_value = 2 * (1 - normal_cdf(abs(z)))
    return MannKendallResult(tau=round(tau, 3), p_value=round(p_value, 4))


def trend_direction(slope: Optional[float], tolerance: float = 1e-3) -> str:
    """Arrow for a slope: up above +tolerance, down below -tolerance, else flat."""
    if slope is None or not math.isfinite(slope):
        return ARROW_FLAT
    if slope > tolerance:
        return ARROW_UP
    if slope < -tolerance:
        return ARROW_DOWN
    return ARROW_FLAT


def compute_confidence_score(
    n_years: int,
    completeness: float,
    inter_station_std: Optional[float] = None,
) -> float:
    """
    Blend years of record, completeness and inter-station coherence.

    Weights are 0.5 for min(1, n_years / 20), 0.3 for the clamped
    completeness and 0.2 for max(0, 1 - std / 5) (1 without a spread).

    Returns:
        Score in [0, 1], rounded to 2 decimals
    """
    years_score = min(1.0, n_years / 20)
    completeness_score = min(1.0, max(0.0, completeness))
    coherence_score = 1.0
    if inter_station_std is not None and math.isfinite(inter_station_std):
        coherence_score = max(0.0, 1 - inter_station_std / 5)
    weighted = years_score * 0.5 + completeness_score * 0.3 + coherence_score * 0.2
    return round(min(1.0, max(0.0, weighted)), 2)


def sample_std(values: Iterable[Optional[float]]) -> Optional[float]:
    """Bessel-corrected standard deviation, None below 2 finite values."""
    samples = finite_values(values)
    n = len(samples)
    if n < 2:
        return None
    mean = sum(samples) / n
    return math.sqrt(sum((v - mean) ** 2 for v in samples) / (n - 1))


def inter_station_spread(
    per_station_series: Dict[str, Sequence[Observation]],
    phase_start: int,
    phase_end: int,
) -> Optional[float]:
    """
    Spread of the stations' phase rainfall totals.

    Each station's series is sliced independently; its per-year phase
    rainfall totals are averaged without distance weighting.

    Args:
        per_station_series: Observations keyed by station id
        phase_start: Phase start day of year
        phase_end: Phase end day of year

    Returns:
        Sample std (2 dp) of the station means, None when fewer than 2
        stations have a finite mean
    """
    means: List[float] = []
    for series in per_station_series.values():
        totals = [
            sum(_finite_or_zero(obs.rainfall) for obs in year_slice.observations)
            for year_slice in slice_by_phase(series, phase_start, phase_end)
        ]
        samples = finite_values(totals)
        if samples:
            means.append(round(sum(samples) / len(samples), 2))
    spread = sample_std(means)
    return round(spread, 2) if spread is not None else None


def _finite_or_zero(value: Optional[float]) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    return value
