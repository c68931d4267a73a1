"""Tests for DetectorConfiguration and Detector."""

import math

import pytest

pytestmark = pytest.mark.unit

from flowcorr.contracts import ConfigurationError
from flowcorr.corrections import Alignment, Recentering, TwistAndRescale
from flowcorr.detectors import Detector, DetectorConfiguration
from flowcorr.pipeline import CorrectionManager


class TestConfigurationTopology:

    def test_invalid_harmonics(self, single_bin):
        with pytest.raises(ValueError, match="harmonics"):
            DetectorConfiguration("A", single_bin, [0, 2])

    def test_invalid_normalization(self, single_bin):
        with pytest.raises(ValueError, match="normalization"):
            DetectorConfiguration("A", single_bin, [2], normalization="QoverN")

    def test_steps_sorted_by_key(self, single_bin):
        configuration = DetectorConfiguration("A", single_bin, [2])
        configuration.add_correction_step(TwistAndRescale(2, "B"))
        configuration.add_correction_step(Alignment(2, "B"))
        configuration.add_correction_step(Recentering())

        assert [type(s) for s in configuration.steps] == [Recentering, Alignment, TwistAndRescale]

    def test_duplicate_step_rejected(self, single_bin):
        configuration = DetectorConfiguration("A", single_bin, [2])
        configuration.add_correction_step(Recentering())
        with pytest.raises(ConfigurationError, match="already has"):
            configuration.add_correction_step(Recentering(width_equalization=True))

    def test_step_cannot_change_owner(self, single_bin):
        step = Recentering()
        DetectorConfiguration("A", single_bin, [2]).add_correction_step(step)
        with pytest.raises(ConfigurationError, match="already belongs"):
            DetectorConfiguration("B", single_bin, [2]).add_correction_step(step)

    def test_previous_corrected_vector(self, make_manager):
        manager = make_manager(("A", [2], [Recentering(), Alignment(2, "B")]), ("B", [2], []))
        manager.setup()
        configuration = manager.find_configuration("A")
        recentering, alignment = configuration.steps

        assert configuration.previous_corrected_vector(recentering) is configuration.plain_vector
        assert configuration.previous_corrected_vector(alignment) is recentering.corrected_vector
        assert alignment.input_vector is recentering.corrected_vector

    def test_frozen_after_setup(self, make_manager):
        manager = make_manager(("A", [2], []))
        manager.setup()
        configuration = manager.find_configuration("A")

        assert configuration.frozen
        with pytest.raises(ConfigurationError, match="frozen"):
            configuration.add_correction_step(Recentering())
        with pytest.raises(ConfigurationError, match="frozen"):
            configuration.activate_harmonic(3)
        # already active: no-op
        configuration.activate_harmonic(2)


class TestConfigurationEvents:

    def test_build_from_data_vectors(self, make_manager):
        manager = make_manager(("A", [1, 2], []))
        manager.setup()

        manager.clear_event()
        manager.add_data_vector("A", 0.0)
        manager.add_data_vectors("A", [math.pi / 2])
        manager.process_event([50.0])

        plain = manager.corrected_vectors("A")["plain"]
        assert plain.good_quality
        assert plain.multiplicity == 2.0
        assert (plain.qx(1), plain.qy(1)) == pytest.approx((0.5, 0.5))
        # harmonic 2: cos(0) + cos(pi) = 0, sin(0) + sin(pi) = 0
        assert (plain.qx(2), plain.qy(2)) == pytest.approx((0.0, 0.0), abs=1e-12)
        assert manager.corrected_vector("A").name == "plain"

    def test_empty_event_is_bad_quality(self, make_manager):
        manager = make_manager(("A", [2], []))
        manager.setup()
        manager.clear_event()
        manager.process_event([50.0])
        assert manager.corrected_vector("A").good_quality is False

    def test_min_data_vectors(self, single_bin):
        detector = Detector("DET")
        detector.add_configuration(DetectorConfiguration("A", single_bin, [2], min_data_vectors=3))
        manager = CorrectionManager()
        manager.add_detector(detector)
        manager.setup()

        manager.clear_event()
        manager.add_data_vectors("A", [0.1, 0.2])
        manager.process_event([50.0])
        assert manager.corrected_vector("A").good_quality is False

    def test_clear_resets_previous_event(self, make_manager, run_events):
        manager = make_manager(("A", [2], []))
        manager.setup()
        run_events(manager, [{"A": ({2: (1.0, 1.0)}, False)}])

        manager.clear_event()
        manager.add_data_vector("A", 0.0)
        manager.process_event([50.0])
        current = manager.corrected_vector("A")
        assert current.good_quality
        assert current.qx(2) == pytest.approx(1.0)

    def test_report_on_corrections(self, make_manager):
        manager = make_manager(("A", [2], [Recentering(), Alignment(2, "B")]), ("B", [2], []))
        manager.setup()
        report = manager.find_configuration("A").report_on_corrections()
        assert report["steps"] == ["Recentering and width equalization", "Alignment"]
        assert report["calibrating"] == report["steps"]
        assert report["applying"] == []


class TestDetector:

    def test_add_configuration_sets_owner(self, single_bin):
        detector = Detector("TPC", 3)
        configuration = DetectorConfiguration("TPC_full", single_bin, [2])
        detector.add_configuration(configuration)

        assert configuration.detector is detector
        assert detector.find_configuration("TPC_full") is configuration
        assert detector.find_configuration("nope") is None

    def test_duplicate_configuration_name(self, single_bin):
        detector = Detector("TPC")
        detector.add_configuration(DetectorConfiguration("A", single_bin, [2]))
        with pytest.raises(ConfigurationError, match="already has"):
            detector.add_configuration(DetectorConfiguration("A", single_bin, [3]))

    def test_configuration_of_other_detector(self, single_bin):
        tpc = Detector("TPC")
        configuration = DetectorConfiguration("A", single_bin, [2], detector=tpc)
        with pytest.raises(ConfigurationError, match="belongs to detector 'TPC'"):
            Detector("VZERO").add_configuration(configuration)
