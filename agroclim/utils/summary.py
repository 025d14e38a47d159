"""
Yearly weather summary.

Descriptive statistics of a (fused) observation series over a calendar
year: day/night mean temperature, humidity, wind, precipitation and
rainy days, overall and per month. Day hours are 06:00-18:00 UTC.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Set

from agroclim.schemas.summary import MonthlySummary, SummaryMetadata, WeatherSummaryResponse, YearSummary
from agroclim.schemas.weather import Observation, StationWithDistance, ensure_utc

DAY_START_HOUR = 6
DAY_END_HOUR = 18

MONTH_LABELS = (
    "Janvier", "Février", "Mars", "Avril", "Mai", "Juin",
    "Juillet", "Août", "Septembre", "Octobre", "Novembre", "Décembre",
)


def _mean(total: float, count: int) -> Optional[float]:
    return round(total / count, 2) if count else None


@dataclass
class _Accumulator:
    day_temp_sum: float = 0.0
    day_count: int = 0
    night_temp_sum: float = 0.0
    night_count: int = 0
    humidity_sum: float = 0.0
    humidity_count: int = 0
    wind_sum: float = 0.0
    wind_count: int = 0
    precipitation_sum: float = 0.0
    precipitation_days: Set[str] = field(default_factory=set)

    def add(self, obs: Observation, hour: int, day_key: str) -> None:
        if obs.temperature is not None:
            if DAY_START_HOUR <= hour < DAY_END_HOUR:
                self.day_temp_sum += obs.temperature
                self.day_count += 1
            else:
                self.night_temp_sum += obs.temperature
                self.night_count += 1
        if obs.relative_humidity is not None:
            self.humidity_sum += obs.relative_humidity
            self.humidity_count += 1
        if obs.wind_speed is not None:
            self.wind_sum += obs.wind_speed
            self.wind_count += 1

        precipitation = obs.rainfall if obs.rainfall is not None else obs.rainfall_24h
        if precipitation is not None and precipitation > 0:
            self.precipitation_sum += precipitation
            self.precipitation_days.add(day_key)

    @property
    def has_data(self) -> bool:
        return bool(
            self.day_count or self.night_count or self.humidity_count
            or self.wind_count or self.precipitation_days
        )


def build_weather_summary(
    observations: Sequence[Observation],
    *,
    start: datetime,
    end: datetime,
    latitude: float,
    longitude: float,
    stations: Sequence[StationWithDistance],
    source: str,
) -> WeatherSummaryResponse:
    """
    Summarise observations falling within ``[start, end]``.

    Months without any data are left out of the monthly breakdown.
    """
    start = ensure_utc(start)
    end = ensure_utc(end)
    overall = _Accumulator()
    monthly = [_Accumulator() for _ in range(12)]

    for obs in observations:
        ts = ensure_utc(obs.ts)
        if ts < start or ts > end:
            continue
        day_key = ts.strftime("%Y-%m-%d")
        overall.add(obs, ts.hour, day_key)
        monthly[ts.month - 1].add(obs, ts.hour, day_key)

    months: List[MonthlySummary] = [
        MonthlySummary(
            month_index=index,
            label=MONTH_LABELS[index],
            avg_day_temp=_mean(bucket.day_temp_sum, bucket.day_count),
            avg_night_temp=_mean(bucket.night_temp_sum, bucket.night_count),
            avg_humidity=_mean(bucket.humidity_sum, bucket.humidity_count),
            avg_wind_speed=_mean(bucket.wind_sum, bucket.wind_count),
            total_precipitation=round(bucket.precipitation_sum, 2),
            precipitation_day_count=len(bucket.precipitation_days),
            has_data=True,
        )
        for index, bucket in enumerate(monthly)
        if bucket.has_data
    ]

    return WeatherSummaryResponse(
        summary=YearSummary(
            avg_day_temp=_mean(overall.day_temp_sum, overall.day_count),
            avg_night_temp=_mean(overall.night_temp_sum, overall.night_count),
            avg_humidity=_mean(overall.humidity_sum, overall.humidity_count),
            avg_wind_speed=_mean(overall.wind_sum, overall.wind_count),
            total_precipitation=round(overall.precipitation_sum, 2),
            day_sample_count=overall.day_count,
            night_sample_count=overall.night_count,
            humidity_sample_count=overall.humidity_count,
            wind_sample_count=overall.wind_count,
            precipitation_day_count=len(overall.precipitation_days),
        ),
        monthly=months,
        metadata=SummaryMetadata(
            start_date=start,
            end_date=end,
            latitude=latitude,
            longitude=longitude,
            hourly_sample_count=overall.day_count + overall.night_count,
            source=source,
            stations_used=list(stations),
        ),
    )
