"""
Tests for risk probabilities, trends and the confidence score.
"""

from datetime import datetime, timezone

import pytest

from agroclim.core.exceptions import InvalidArgument
from agroclim.schemas.weather import Observation
from agroclim.utils.risk import (
    ARROW_DOWN,
    ARROW_FLAT,
    ARROW_UP,
    compute_confidence_score,
    empirical_probability,
    erf,
    inter_station_spread,
    linear_trend,
    mann_kendall,
    probability_above,
    probability_below,
    trend_direction,
)


class TestEmpiricalProbability:

    def test_share_of_matching_values(self):
        record = empirical_probability([0, 1, 2, 3, 4], lambda v: v >= 3)
        assert record.probability == 0.4
        assert record.sample_size == 5
        assert record.occurrences == 2

    def test_non_finite_values_are_excluded(self):
        record = probability_above([5, None, float("nan"), 1], 2)
        assert record.sample_size == 2
        assert record.probability == 0.5

    def test_below_is_inclusive(self):
        assert probability_below([1, 2, 3], 2).occurrences == 2

    def test_no_samples(self):
        record = empirical_probability([], lambda v: True)
        assert record.probability is None
        assert record.sample_size == 0


class TestLinearTrend:

    def test_exact_line(self):
        trend = linear_trend([2019, 2020, 2021, 2022, 2023], [10, 12, 14, 16, 18])
        assert trend.slope == 2.0
        assert trend.intercept == -4028.0
        assert trend.r2 == 1.0

    def test_constant_series_has_no_trend(self):
        trend = linear_trend([2019, 2020, 2021, 2022, 2023], [5] * 5)
        assert trend.slope == 0
        assert trend.intercept == 5.0
        assert trend.r2 == 0.0

    def test_skips_invalid_pairs(self):
        trend = linear_trend([1, 2, 3, 4], [2, None, 6, float("nan")])
        assert trend.slope == 2.0

    def test_insufficient_points(self):
        assert linear_trend([1], [1]) is None
        assert linear_trend([3, 3, 3], [1, 2, 3]) is None

    def test_length_mismatch(self):
        with pytest.raises(InvalidArgument):
            linear_trend([1, 2, 3], [1, 2])


class TestMannKendall:

    def test_strictly_increasing_series(self):
        result = mann_kendall(list(range(10)))
        assert result.tau == 1.0
        assert result.p_value < 0.01

    def test_decreasing_series(self):
        result = mann_kendall([9, 7, 6, 4, 2, 1])
        assert result.tau == -1.0

    def test_no_trend(self):
        result = mann_kendall([3, 3, 3, 3])
        assert result.tau == 0.0
        assert result.p_value == 1.0

    def test_too_few_values(self):
        assert mann_kendall([1, 2]) is None

    def test_erf(self):
        assert erf(0) == pytest.approx(0.0, abs=1e-7)
        assert erf(1) == pytest.approx(0.8427007, abs=1e-6)
        assert erf(-1) == pytest.approx(-0.8427007, abs=1e-6)


def test_trend_direction():
    assert trend_direction(0.5) == ARROW_UP
    assert trend_direction(-0.5) == ARROW_DOWN
    assert trend_direction(0.0001) == ARROW_FLAT
    assert trend_direction(None) == ARROW_FLAT


class TestConfidenceScore:

    def test_full_confidence(self):
        assert compute_confidence_score(20, 1.0) == 1.0

    def test_blended_score(self):
        # 0.5 * 0.5 + 0.3 * 0.5 + 0.2 * (1 - 2.5 / 5)
        assert compute_confidence_score(10, 0.5, 2.5) == 0.5

    def test_clamped_inputs(self):
        assert compute_confidence_score(0, -1.0, 50.0) == 0.0
        assert compute_confidence_score(40, 2.0) == 1.0


class TestInterStationSpread:

    @staticmethod
    def _series(rainfall: float):
        return [Observation(ts=datetime(2023, 5, 10, tzinfo=timezone.utc), rainfall=rainfall)]

    def test_two_stations(self):
        spread = inter_station_spread({"a": self._series(10.0), "b": self._series(20.0)}, 1, 366)
        assert spread == 7.07

    def test_single_station(self):
        assert inter_station_spread({"a": self._series(10.0)}, 1, 366) is None

    def test_outside_phase_is_ignored(self):
        spread = inter_station_spread({"a": self._series(10.0), "b": self._series(20.0)}, 200, 250)
        assert spread is None
