"""Tests for calibration profiles and QA counters."""

import math

import pytest

pytestmark = pytest.mark.unit

from flowcorr.core import (
    CalibrationProfile,
    EventClassCounter,
    EventClassVariable,
    EventClassVariablesSet,
    RECENTERING_FIELDS,
    CORRELATION_FIELDS,
)


@pytest.fixture
def two_bins():
    return EventClassVariablesSet([EventClassVariable(0, "centrality", [0.0, 50.0, 100.0])])


class TestCalibrationProfile:
    """Test accumulation and derived means/errors."""

    def test_mean_and_spread(self, two_bins):
        profile = CalibrationProfile("Qn_A", two_bins, RECENTERING_FIELDS, harmonics=[2], error_mode="s")
        profile.fill(0, {"X": 1.0, "Y": 0.0}, harmonic=2)
        profile.fill(0, {"X": 3.0, "Y": 0.0}, harmonic=2)

        assert profile.read(0, "X", 2) == pytest.approx(2.0)
        assert profile.error(0, "X", 2) == pytest.approx(1.0)
        assert profile.entry_count(0, 2) == 2

    def test_error_of_mean(self, two_bins):
        profile = CalibrationProfile("QnQn_AxB", two_bins, CORRELATION_FIELDS, harmonics=[2])
        profile.fill(0, {"XY": 1.0}, harmonic=2)
        profile.fill(0, {"XY": 3.0}, harmonic=2)

        assert profile.error(0, "XY", 2) == pytest.approx(1.0 / math.sqrt(2))

    def test_empty_bin_reads_zero(self, two_bins):
        profile = CalibrationProfile("Qn_A", two_bins, RECENTERING_FIELDS, harmonics=[2])
        assert profile.read(1, "X", 2) == 0.0
        assert profile.error(1, "X", 2) == 0.0
        assert not profile.validated(1, 2)

    def test_out_of_range_bin_not_booked(self, two_bins):
        profile = CalibrationProfile("Qn_A", two_bins, RECENTERING_FIELDS, harmonics=[2])
        profile.fill(None, {"X": 1.0, "Y": 1.0}, harmonic=2)

        assert profile.arrays()["entries"].sum() == 0
        assert profile.entry_count(None, 2) == 0
        assert not profile.validated(None, 2)

    def test_validated_at_min_entries(self, two_bins):
        profile = CalibrationProfile("QnQn_AxB", two_bins, CORRELATION_FIELDS, harmonics=[2], min_entries=2)
        profile.fill(0, {f: 1.0 for f in CORRELATION_FIELDS}, harmonic=2)
        assert not profile.validated(0, 2)
        profile.fill(0, {f: 1.0 for f in CORRELATION_FIELDS}, harmonic=2)
        assert profile.validated(0, 2)

    def test_slot_zero_always_present(self, two_bins):
        profile = CalibrationProfile("Qn_A", two_bins, RECENTERING_FIELDS, harmonics=[3, 1])
        assert profile.harmonics == (0, 1, 3)

    def test_layout_compatibility(self, two_bins):
        a = CalibrationProfile("Qn_A", two_bins, RECENTERING_FIELDS, harmonics=[2])
        b = CalibrationProfile("Qn_A", two_bins, RECENTERING_FIELDS, harmonics=[2, 3])
        assert a.is_compatible(CalibrationProfile("Qn_A", two_bins, RECENTERING_FIELDS, harmonics=[2]))
        assert not a.is_compatible(b)

    def test_invalid_error_mode(self, two_bins):
        with pytest.raises(ValueError, match="error mode"):
            CalibrationProfile("Qn_A", two_bins, RECENTERING_FIELDS, error_mode="rms")

    def test_invalid_min_entries(self, two_bins):
        with pytest.raises(ValueError, match="min_entries"):
            CalibrationProfile("Qn_A", two_bins, RECENTERING_FIELDS, min_entries=0)


class TestEventClassCounter:

    def test_fill_and_total(self, two_bins):
        counter = EventClassCounter("TwScaleNvE_A", two_bins)
        counter.fill(1)
        counter.fill(1)
        counter.fill(None)

        assert counter.count(1) == 2.0
        assert counter.count(0) == 0.0
        assert counter.out_of_range == 1
        assert counter.total == 3.0
