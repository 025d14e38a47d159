"""
Crop phase slicing.

Partitions an observation series into one bucket per calendar year,
keeping only instants whose UTC day of year falls inside the phase
window. Windows with start > end wrap the year boundary (e.g. Nov -> Feb).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List

from agroclim.schemas.weather import Observation, ensure_utc


@dataclass(frozen=True)
class YearSlice:
    """Observations of one calendar year inside the phase window."""

    year: int
    observations: List[Observation] = field(default_factory=list)


def day_of_year(ts: datetime) -> int:
    """1-based day of year of the UTC calendar date (Jan 1 = 1)."""
    return ensure_utc(ts).timetuple().tm_yday


def in_phase(doy: int, phase_start: int, phase_end: int) -> bool:
    """Phase membership test, handling windows that wrap the year end."""
    if phase_start <= phase_end:
        return phase_start <= doy <= phase_end
    return doy >= phase_start or doy <= phase_end


def slice_by_phase(observations: Iterable[Observation], phase_start: int, phase_end: int) -> List[YearSlice]:
    """
    Group observations by calendar year, keeping those inside the phase.

    The year label is the calendar year of the timestamp, so for a
    wrapping window a year's slice holds its own early-year and late-year
    days.

    Returns:
        One YearSlice per year present, ascending; each sorted by timestamp
    """
    buckets: Dict[int, List[Observation]] = {}
    for obs in observations:
        ts = ensure_utc(obs.ts)
        if not in_phase(day_of_year(ts), phase_start, phase_end):
            continue
        buckets.setdefault(ts.year, []).append(obs)

    return [
        YearSlice(year=year, observations=sorted(buckets[year], key=lambda o: o.ts))
        for year in sorted(buckets)
    ]
