"""Tests for recentering and width equalization."""

import numpy as np
import pytest

pytestmark = pytest.mark.unit

from flowcorr.core import EventClassVariable, EventClassVariablesSet
from flowcorr.corrections import Recentering


def two_passes(make_manager, run_events, events, replay=None, **step_kwargs):
    """Calibrate on ``events``, then correct ``replay`` (default: same events).

    Returns the second-pass manager and the corrected (qx, qy) per event.
    """
    first = make_manager(("A", [2], [Recentering(**step_kwargs)]))
    first.setup()
    run_events(first, events)

    second = make_manager(("A", [2], [Recentering(**step_kwargs)]))
    second.setup(first.calibration_output)
    corrected = []
    for event in replay or events:
        run_events(second, [event])
        vec = second.corrected_vector("A")
        corrected.append((vec.qx(2), vec.qy(2)))
    return second, corrected


class TestRecentering:

    def test_profile_name_and_fields(self, make_manager):
        manager = make_manager(("A", [2], [Recentering()]))
        manager.setup()
        profile = manager.calibration_output.get("Qn_A")
        assert profile.fields == ("X", "Y")
        assert profile.error_mode == "s"

    def test_removes_event_class_mean(self, make_manager, run_events):
        events = [{"A": {2: (1.0, 2.0)}}, {"A": {2: (5.0, 4.0)}}]
        _, corrected = two_passes(make_manager, run_events, events)
        assert corrected[0] == pytest.approx((-2.0, -1.0))
        assert corrected[1] == pytest.approx((2.0, 1.0))

    def test_corrected_mean_is_zero(self, make_manager, run_events):
        rng = np.random.default_rng(7)
        events = [
            {"A": {2: (0.3 + rng.normal(0, 0.1), -0.2 + rng.normal(0, 0.1))}}
            for _ in range(200)
        ]
        _, corrected = two_passes(make_manager, run_events, events)
        mean = np.mean(corrected, axis=0)
        np.testing.assert_allclose(mean, [0.0, 0.0], atol=1e-12)

    def test_width_equalization_divides_by_spread(self, make_manager, run_events):
        events = [{"A": {2: (1.0, 2.0)}}, {"A": {2: (5.0, 4.0)}}]
        _, corrected = two_passes(make_manager, run_events, events, width_equalization=True)
        assert corrected[0] == pytest.approx((-1.0, -1.0))
        assert corrected[1] == pytest.approx((1.0, 1.0))

    def test_zero_spread_leaves_component_undivided(self, make_manager, run_events):
        events = [{"A": {2: (2.0, 3.0)}}] * 3
        _, corrected = two_passes(make_manager, run_events, events,
                                  replay=[{"A": {2: (2.5, 3.0)}}], width_equalization=True)
        assert corrected[0] == pytest.approx((0.5, 0.0))

    def test_unvalidated_bin_passes_through(self, make_manager, run_events):
        events = [{"A": {2: (1.0, 2.0)}}]
        manager, corrected = two_passes(make_manager, run_events, events, min_entries=2)
        assert corrected[0] == pytest.approx((1.0, 2.0))
        assert manager.corrected_vector("A").name == "rec"

    def test_out_of_range_events_not_collected(self, make_manager, run_events):
        manager = make_manager(("A", [2], [Recentering()]))
        manager.setup()
        run_events(manager, [{"A": {2: (1.0, 2.0)}}], variables=(150.0,))
        assert manager.calibration_output.get("Qn_A").arrays()["entries"].sum() == 0

    def test_calibration_is_per_event_class(self, make_manager, run_events):
        two_bins = EventClassVariablesSet([EventClassVariable(0, "centrality", [0.0, 50.0, 100.0])])

        first = make_manager(("A", [2], [Recentering()]), event_classes=two_bins)
        first.setup()
        run_events(first, [{"A": {2: (1.0, 1.0)}}], variables=(10.0,))
        run_events(first, [{"A": {2: (3.0, 3.0)}}], variables=(90.0,))

        second = make_manager(("A", [2], [Recentering()]), event_classes=two_bins)
        second.setup(first.calibration_output)
        run_events(second, [{"A": {2: (2.0, 2.0)}}], variables=(10.0,))
        assert second.corrected_vector("A").qx(2) == pytest.approx(1.0)
        run_events(second, [{"A": {2: (2.0, 2.0)}}], variables=(90.0,))
        assert second.corrected_vector("A").qx(2) == pytest.approx(-1.0)

    def test_collects_from_its_input_vector(self, make_manager, run_events):
        """Second-pass statistics are the plain values, not the recentered ones."""
        events = [{"A": {2: (1.0, 2.0)}}, {"A": {2: (5.0, 4.0)}}]
        manager, _ = two_passes(make_manager, run_events, events)
        profile = manager.calibration_output.get("Qn_A")
        assert profile.read(0, "X", 2) == pytest.approx(3.0)
        assert profile.read(0, "Y", 2) == pytest.approx(3.0)
