"""Tests for CorrectionRunner: full passes over an event table on disk."""

import numpy as np
import pandas as pd
import pytest

pytestmark = pytest.mark.integration

from flowcorr.contracts import ContractViolation
from flowcorr.core import CalibrationRegistry
from flowcorr.pipeline import CorrectionRunner
from flowcorr.setup_directories import setup_output_directories

N_EVENTS = 10

EVENT_CLASSES = [{"label": "centrality", "edges": [0, 100]}]


def detectors(*steps_on_a):
    return [{
        "name": "DET",
        "configurations": [
            {"name": "A", "harmonics": [2], "corrections": list(steps_on_a)},
            {"name": "B", "harmonics": [2]},
        ],
    }]


ALIGNMENT = {"kind": "alignment", "harmonic": 2, "reference": "B"}


@pytest.fixture
def events():
    """A at phase 0 and B at phase pi/4 in harmonic 2, every event."""
    return pd.DataFrame({
        "centrality": np.linspace(5, 95, N_EVENTS),
        "A_qx2": np.ones(N_EVENTS),
        "A_qy2": np.zeros(N_EVENTS),
        "B_qx2": np.zeros(N_EVENTS),
        "B_qy2": np.ones(N_EVENTS),
    })


@pytest.fixture
def run_pass(make_config, temp_dir):
    """Run one pass in its own output directory; returns (runner, corrected)."""
    def _run(name, events, calibration_input=None, **overrides):
        user = {
            "BASE_DIR": str(temp_dir / name),
            "EVENT_CLASSES": EVENT_CLASSES,
            "DETECTORS": detectors(ALIGNMENT),
            "OUTPUT_FORMAT": "csv",
        }
        if calibration_input is not None:
            user["CALIBRATION_INPUT"] = str(calibration_input)
        user.update(overrides)
        config = make_config(**user)
        runner = CorrectionRunner(config, setup_output_directories(config.base_dir))
        return runner, runner.run(events)
    return _run


class TestRunnerPasses:

    def test_first_pass_writes_outputs(self, run_pass, events):
        runner, corrected = run_pass("pass1", events)

        assert runner.outputs["corrected"].name == "corrected_events.csv"
        assert runner.outputs["corrected"].exists()
        assert runner.outputs["calibration"].exists()
        assert "qa" not in runner.outputs
        assert (runner.output_dirs["logs"] / "flowcorr.log").exists()

        assert len(corrected) == N_EVENTS
        assert (corrected["A_correction"] == "plain").all()
        np.testing.assert_allclose(corrected["A_corrected_qx2"], 1.0)

        calibration = CalibrationRegistry.load(runner.outputs["calibration"])
        assert calibration.get("QnQn_AxB").entry_count(0, 2) == N_EVENTS

    def test_second_pass_applies_alignment(self, run_pass, events):
        first, _ = run_pass("pass1", events)
        second, corrected = run_pass("pass2", events, calibration_input=first.outputs["calibration"])

        assert (corrected["A_correction"] == "align").all()
        np.testing.assert_allclose(corrected["A_corrected_qx2"], 0.0, atol=1e-12)
        np.testing.assert_allclose(corrected["A_corrected_qy2"], 1.0)
        np.testing.assert_allclose(corrected["A_plain_qx2"], 1.0)
        np.testing.assert_allclose(corrected["A_align_qy2"], 1.0)
        assert corrected["A_corrected_good"].all()

        written = pd.read_csv(second.outputs["corrected"])
        np.testing.assert_allclose(written["A_corrected_qy2"], 1.0)
        assert list(written["centrality"]) == pytest.approx(list(events["centrality"]))

    def test_twist_pass_writes_qa(self, run_pass, events):
        twist = {"kind": "twist_and_rescale", "harmonic": 2, "reference": "B"}
        first, _ = run_pass("pass1", events.iloc[:1], DETECTORS=detectors(twist))
        second, _ = run_pass("pass2", events.iloc[:3], calibration_input=first.outputs["calibration"],
                             DETECTORS=detectors(twist))

        qa = CalibrationRegistry.load(second.outputs["qa"])
        assert qa.get("TwScaleNvE_A").count(0) == 3.0

    def test_non_finite_components_are_bad_quality(self, run_pass, events):
        events.loc[3, "A_qx2"] = np.nan
        _, corrected = run_pass("pass1", events)
        assert not corrected.loc[3, "A_corrected_good"]
        assert corrected["A_corrected_good"].sum() == N_EVENTS - 1

    def test_quality_column(self, run_pass, events):
        events["A_good"] = [True] * (N_EVENTS - 2) + [False] * 2
        runner, corrected = run_pass("pass1", events)
        assert corrected["A_corrected_good"].sum() == N_EVENTS - 2
        assert runner.manager.calibration_output.get("QnQn_AxB").entry_count(0, 2) == N_EVENTS - 2

    def test_step_columns_can_be_left_out(self, run_pass, events):
        first, _ = run_pass("pass1", events)
        _, corrected = run_pass("pass2", events, calibration_input=first.outputs["calibration"],
                                output={"include_steps": False})

        assert "A_corrected_qy2" in corrected.columns
        assert not any(c.startswith(("A_plain_", "A_align_")) for c in corrected.columns)

    def test_events_from_file(self, run_pass, events, temp_dir):
        path = temp_dir / "events.csv"
        events.to_csv(path, index=False)
        _, corrected = run_pass("pass1", str(path))
        assert len(corrected) == N_EVENTS


class TestRunnerContracts:

    def test_process_requires_setup(self, make_config, output_dirs, events):
        config = make_config(EVENT_CLASSES=EVENT_CLASSES, DETECTORS=detectors())
        with pytest.raises(ContractViolation, match="not set up"):
            CorrectionRunner(config, output_dirs).process(events)

    def test_missing_columns(self, make_config, output_dirs, events):
        config = make_config(EVENT_CLASSES=EVENT_CLASSES, DETECTORS=detectors())
        runner = CorrectionRunner(config, output_dirs)
        runner.setup()
        with pytest.raises(ContractViolation, match="B_qy2"):
            runner.process(events.drop(columns=["B_qy2"]))

    def test_no_event_table(self, make_config, output_dirs):
        config = make_config(EVENT_CLASSES=EVENT_CLASSES, DETECTORS=detectors())
        with pytest.raises(ValueError, match="No event table"):
            CorrectionRunner(config, output_dirs).run()
