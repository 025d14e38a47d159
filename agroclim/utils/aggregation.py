"""
Cross-year aggregation of agro-climatic indicators.

Every indicator is reduced across years to a SeriesStatistics record
(mean, sample standard deviation, p10/p50/p90). Only finite samples
count; a threshold key absent from a year is a missing sample for that
year, never a zero.
"""

import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from agroclim.core.exceptions import InvalidArgument
from agroclim.schemas.indicators import (
    AggregatedIndicators,
    FreezeDayStatistics,
    FreezeEventStatistics,
    HeatDayStatistics,
    HeatwaveStatistics,
    IndicatorStatistics,
    SeriesStatistics,
    YearIndicators,
)


def finite_values(values: Iterable[Optional[float]]) -> List[float]:
    """Drop None, NaN and infinite entries."""
    return [float(v) for v in values if v is not None and math.isfinite(v)]


def _interpolate(sorted_values: Sequence[float], q: float) -> float:
    position = (len(sorted_values) - 1) * q
    lower = math.floor(position)
    rest = position - lower
    if lower + 1 < len(sorted_values):
        return sorted_values[lower] + rest * (sorted_values[lower + 1] - sorted_values[lower])
    return sorted_values[lower]


def quantile(values: Iterable[Optional[float]], q: float) -> Optional[float]:
    """
    Quantile by linear interpolation between order statistics at (n-1)*q.

    Args:
        values: Samples (non-finite entries ignored)
        q: Quantile in [0, 1]

    Returns:
        The interpolated quantile, unrounded, or None without samples

    Raises:
        InvalidArgument: If q is outside [0, 1]

    Example:
        >>> quantile([1, 3, 5, 7, 9], 0.5)
        5.0
    """
    if q is None or not (0 <= q <= 1):
        raise InvalidArgument(f"Quantile must be within [0, 1], got {q!r}")
    samples = sorted(finite_values(values))
    if not samples:
        return None
    return _interpolate(samples, q)


def compute_statistics(values: Iterable[Optional[float]]) -> SeriesStatistics:
    """
    Mean, Bessel-corrected standard deviation and p10/p50/p90.

    The standard deviation is 0 for a single sample. All fields are None
    without finite samples. Results are rounded to 2 decimals.
    """
    samples = sorted(finite_values(values))
    n = len(samples)
    if n == 0:
        return SeriesStatistics()

    mean = sum(samples) / n
    variance = sum((v - mean) ** 2 for v in samples) / (n - 1) if n > 1 else 0.0

    return SeriesStatistics(
        mean=round(mean, 2),
        stdev=round(math.sqrt(variance), 2),
        p10=round(_interpolate(samples, 0.10), 2),
        p50=round(_interpolate(samples, 0.50), 2),
        p90=round(_interpolate(samples, 0.90), 2),
    )


def _keyed_statistics(
    years: Sequence[YearIndicators],
    mapping: Callable[[YearIndicators], Dict[str, float]],
) -> Dict[str, SeriesStatistics]:
    """Statistics per key, over the union of keys seen across years."""
    keys: List[str] = []
    for entry in years:
        for key in mapping(entry):
            if key not in keys:
                keys.append(key)
    return {
        key: compute_statistics(mapping(entry).get(key) for entry in years)
        for key in keys
    }


def aggregate_indicators(years: Sequence[YearIndicators]) -> AggregatedIndicators:
    """
    Roll per-year indicators up into cross-year statistics.

    The result does not depend on the order of ``years``; the returned
    year list is sorted by year.
    """
    years = sorted(years, key=lambda entry: entry.year)

    def series(getter: Callable[[YearIndicators], Optional[float]]) -> SeriesStatistics:
        return compute_statistics(getter(entry) for entry in years)

    heatwave_keys: List[str] = []
    for entry in years:
        for key in entry.heatwaves:
            if key not in heatwave_keys:
                heatwave_keys.append(key)

    def heatwave_series(key: str, attribute: str) -> SeriesStatistics:
        return series(
            lambda entry: getattr(entry.heatwaves[key], attribute) if key in entry.heatwaves else None
        )

    stats = IndicatorStatistics(
        gdd=_keyed_statistics(years, lambda entry: entry.gdd),
        hdd=_keyed_statistics(years, lambda entry: entry.hdd),
        rainfall_total=series(lambda entry: entry.rainfall.total),
        dry_days=series(lambda entry: entry.rainfall.dry_days),
        max_dry_spell=series(lambda entry: entry.rainfall.max_dry_spell),
        heavy_rain_days=_keyed_statistics(years, lambda entry: entry.rainfall.heavy_rain_days),
        freeze_days=FreezeDayStatistics(
            le0=series(lambda entry: entry.freeze_days.le0),
            le_minus2=series(lambda entry: entry.freeze_days.le_minus2),
            le_minus4=series(lambda entry: entry.freeze_days.le_minus4),
        ),
        heat_days=HeatDayStatistics(
            ge30=series(lambda entry: entry.heat_days.ge30),
            ge32=series(lambda entry: entry.heat_days.ge32),
            ge35=series(lambda entry: entry.heat_days.ge35),
        ),
        heatwaves={
            key: HeatwaveStatistics(
                events=heatwave_series(key, "events"),
                total_days=heatwave_series(key, "total_days"),
                longest=heatwave_series(key, "longest"),
            )
            for key in heatwave_keys
        },
        wind_mean_days=_keyed_statistics(years, lambda entry: entry.wind.mean_days),
        wind_gust_days=_keyed_statistics(years, lambda entry: entry.wind.gust_days),
        freeze_events=FreezeEventStatistics(
            last_spring_freeze_doy=series(lambda entry: entry.freeze_events.last_spring_freeze_doy),
            first_autumn_freeze_doy=series(lambda entry: entry.freeze_events.first_autumn_freeze_doy),
        ),
    )

    return AggregatedIndicators(years=list(years), stats=stats)
