"""
Agro-climatic indicator engine.

This module computes, for one year's phase slice, the fixed indicator set:
- Growing / heating degree-days per base temperature
- Freeze and heat observation counts
- Heatwave run statistics per threshold/min-length pair
- Rainfall total, dry observations, longest dry spell, heavy-rain counts
- Wind mean/gust threshold counts
- Last spring and first autumn freeze day of year

All functions are pure. Missing readings are ignored, except rainfall
which counts as 0 mm.

References:
- McMaster & Wilhelm (1997): Growing degree-days methods
- WMO (2010): Guide to Agricultural Meteorological Practices (GAMP)
"""

import math
from typing import Iterable, List, Optional, Sequence

from agroclim.schemas.indicators import (
    FreezeDays,
    FreezeEvents,
    HeatDays,
    IndicatorOptions,
    RainfallIndicators,
    RunStatistics,
    WindIndicators,
    YearIndicators,
    base_key,
    threshold_key,
)
from agroclim.schemas.weather import Observation
from agroclim.utils.phase import YearSlice, day_of_year


FREEZE_THRESHOLDS = {"le0": 0.0, "le_minus2": -2.0, "le_minus4": -4.0}
HEAT_THRESHOLDS = {"ge30": 30.0, "ge32": 32.0, "ge35": 35.0}


def _finite(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return value


# ============================================================================
# RUN-LENGTH SCANNING
# ============================================================================

def run_statistics(flags: Iterable[bool], min_length: int = 1) -> RunStatistics:
    """
    Statistics of maximal runs of consecutive True values.

    A run counts only if its length is at least ``min_length``; a run
    still open at the end of the sequence is included.

    Example:
        >>> run_statistics([True, True, True, False, True], min_length=2)
        RunStatistics(events=1, total_days=3, longest=3)
    """
    events = 0
    total_days = 0
    longest = 0
    current = 0

    for flag in list(flags) + [False]:
        if flag:
            current += 1
            continue
        if current and current >= min_length:
            events += 1
            total_days += current
            longest = max(longest, current)
        current = 0

    return RunStatistics(events=events, total_days=total_days, longest=longest)


def max_run(flags: Iterable[bool]) -> int:
    """Length of the longest run of consecutive True values."""
    return run_statistics(flags, min_length=1).longest


# ============================================================================
# TEMPERATURE
# ============================================================================

def average_temperature(obs: Observation) -> Optional[float]:
    """
    Mean temperature of an observation.

    Uses the mean field when present, else (tmin + tmax) / 2, else None.
    """
    temperature = _finite(obs.temperature)
    if temperature is not None:
        return temperature
    tmin = _finite(obs.temp_min)
    tmax = _finite(obs.temp_max)
    if tmin is not None and tmax is not None:
        return (tmin + tmax) / 2
    return None


def degree_days(observations: Sequence[Observation], base: float, heating: bool = False) -> float:
    """
    Sum of positive deviations from a base temperature.

    Growing degree-days sum max(0, avg - base); heating degree-days sum
    max(0, base - avg). Observations without an average are skipped.
    """
    total = 0.0
    for obs in observations:
        avg = average_temperature(obs)
        if avg is None:
            continue
        delta = base - avg if heating else avg - base
        if delta > 0:
            total += delta
    return round(total, 2)


def count_at_or_below(values: Sequence[Optional[float]], threshold: float) -> int:
    return sum(1 for v in values if v is not None and v <= threshold)


def count_at_or_above(values: Sequence[Optional[float]], threshold: float) -> int:
    return sum(1 for v in values if v is not None and v >= threshold)


def freeze_events(observations: Sequence[Observation], options: IndicatorOptions) -> FreezeEvents:
    """
    Latest spring and first autumn freeze (tmin <= 0 °C) day of year.
    """
    last_spring = None
    first_autumn = None
    for obs in observations:
        tmin = _finite(obs.temp_min)
        if tmin is None or tmin > 0:
            continue
        doy = day_of_year(obs.ts)
        if doy <= options.spring_freeze_end_doy:
            last_spring = doy if last_spring is None else max(last_spring, doy)
        if doy >= options.autumn_freeze_start_doy and first_autumn is None:
            first_autumn = doy
    return FreezeEvents(last_spring_freeze_doy=last_spring, first_autumn_freeze_doy=first_autumn)


# ============================================================================
# INDICATOR BUNDLE
# ============================================================================

def indicators_for_slice(year_slice: YearSlice, options: Optional[IndicatorOptions] = None) -> YearIndicators:
    """
    Compute the indicator bundle for one year's phase slice.

    Args:
        year_slice: Observations of one year, sorted by timestamp
        options: Thresholds and bases (defaults when omitted)

    Returns:
        Immutable YearIndicators
    """
    options = options or IndicatorOptions()
    observations = year_slice.observations

    tmins: List[Optional[float]] = [_finite(o.temp_min) for o in observations]
    tmaxs: List[Optional[float]] = [_finite(o.temp_max) for o in observations]
    rains: List[float] = [_finite(o.rainfall) or 0.0 for o in observations]
    wind_means = [_finite(o.wind_speed) for o in observations]
    wind_gusts = [_finite(o.wind_gust) for o in observations]

    gdd = {base_key(b): degree_days(observations, b) for b in options.gdd_bases}
    hdd = {base_key(b): degree_days(observations, b, heating=True) for b in options.hdd_bases}

    heatwaves = {
        threshold_key(hw.threshold): run_statistics(
            (t is not None and t >= hw.threshold for t in tmaxs), hw.min_length
        )
        for hw in options.heatwave_thresholds
    }

    dry_flags = [r < options.dry_day_threshold for r in rains]
    rainfall = RainfallIndicators(
        total=round(sum(rains), 2),
        dry_days=sum(dry_flags),
        max_dry_spell=max_run(dry_flags),
        heavy_rain_days={
            threshold_key(t): sum(1 for r in rains if r >= t) for t in options.heavy_rain_thresholds
        },
    )

    wind = WindIndicators(
        mean_days={threshold_key(t): count_at_or_above(wind_means, t) for t in options.wind_mean_thresholds},
        gust_days={threshold_key(t): count_at_or_above(wind_gusts, t) for t in options.wind_gust_thresholds},
    )

    return YearIndicators(
        year=year_slice.year,
        gdd=gdd,
        hdd=hdd,
        freeze_days=FreezeDays(**{k: count_at_or_below(tmins, t) for k, t in FREEZE_THRESHOLDS.items()}),
        heat_days=HeatDays(**{k: count_at_or_above(tmaxs, t) for k, t in HEAT_THRESHOLDS.items()}),
        heatwaves=heatwaves,
        rainfall=rainfall,
        wind=wind,
        freeze_events=freeze_events(observations, options),
    )
