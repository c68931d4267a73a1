"""Tests for building a manager from config and for event table I/O."""

import numpy as np
import pandas as pd
import pytest

from flowcorr.corrections import Alignment, Recentering, StepState, TwistAndRescale
from flowcorr.pipeline import build_manager
from flowcorr.pipeline.builder import build_event_classes
from flowcorr.pipeline.events import (
    event_class_matrix,
    read_event_table,
    required_columns,
    vector_columns,
    write_event_table,
)
from flowcorr.core import FlowVector

DETECTORS = [
    {
        "name": "TPC",
        "configurations": [{"name": "TPC", "harmonics": [2, 3], "corrections": [{"kind": "recentering"}]}],
    },
    {
        "name": "VZERO",
        "detector_id": 1,
        "configurations": [{
            "name": "VZEROA",
            "harmonics": [2],
            "corrections": [
                {"kind": "recentering", "width_equalization": True},
                {"kind": "alignment", "harmonic": 2, "reference": "TPC"},
                {"kind": "twist_and_rescale", "harmonic": 2, "reference": "TPC", "min_entries": 5},
            ],
        }],
    },
]

EVENT_CLASSES = [
    {"label": "centrality", "n_bins": 4, "low": 0, "high": 100},
    {"label": "vtx_z", "edges": [-10, 0, 10]},
]


@pytest.fixture
def config(make_config):
    return make_config(DETECTORS=DETECTORS, EVENT_CLASSES=EVENT_CLASSES, SIGNIFICANCE_THRESHOLD=3)


@pytest.mark.unit
class TestBuildManager:

    def test_event_classes(self, config):
        ecs = build_event_classes(config)
        assert ecs.labels == ("centrality", "vtx_z")
        assert ecs.shape == (4, 2)

    def test_topology(self, config):
        manager = build_manager(config)
        assert [d.name for d in manager.detectors] == ["TPC", "VZERO"]
        assert manager.detectors[1].detector_id == 1
        assert [c.name for c in manager.configurations] == ["TPC", "VZEROA"]
        assert not manager.is_setup

    def test_steps_carry_resolved_tunables(self, config):
        manager = build_manager(config)
        recentering, alignment, twist = manager.find_configuration("VZEROA").steps

        assert isinstance(recentering, Recentering)
        assert recentering.width_equalization is True
        assert recentering.min_entries == 1
        assert isinstance(alignment, Alignment) and not isinstance(alignment, TwistAndRescale)
        assert alignment.min_entries == 2
        assert alignment.significance_threshold == 3.0
        assert alignment.reference_name == "TPC"
        assert isinstance(twist, TwistAndRescale)
        assert twist.min_entries == 5

    def test_built_manager_sets_up(self, config):
        manager = build_manager(config)
        manager.setup()
        # TPC recentering still calibrates: VZEROA alignment steps wait
        states = [s.state for s in manager.find_configuration("VZEROA").steps]
        assert states == [StepState.CALIBRATING, StepState.PASSIVE, StepState.PASSIVE]
        assert manager.qa_histograms.names == ["TwScaleNvE_VZEROA"]


@pytest.mark.unit
class TestEventColumns:

    def test_required_columns(self, config):
        assert required_columns(config) == [
            "centrality", "vtx_z",
            "TPC_qx2", "TPC_qy2", "TPC_qx3", "TPC_qy3",
            "VZEROA_qx2", "VZEROA_qy2",
        ]

    def test_vector_columns(self):
        vec = FlowVector("rec", [2])
        vec.set_components(2, 0.1, 0.2)
        assert vector_columns("TPC", "corrected", vec) == {
            "TPC_corrected_qx2": 0.1,
            "TPC_corrected_qy2": 0.2,
            "TPC_corrected_good": True,
        }

    def test_event_class_matrix(self, config):
        df = pd.DataFrame({"vtx_z": [1.0, -2.0], "centrality": [5.0, 55.0]})
        np.testing.assert_array_equal(event_class_matrix(df, config), [[5.0, 1.0], [55.0, -2.0]])


@pytest.mark.integration
class TestEventTableIO:

    def test_csv_round_trip(self, temp_dir):
        df = pd.DataFrame({"centrality": [5.0, 55.0], "TPC_qx2": [0.1, -0.2]})
        path = write_event_table(df, temp_dir / "events", fmt="csv")
        assert path.suffix == ".csv"
        pd.testing.assert_frame_equal(read_event_table(path), df)

    def test_parquet_round_trip(self, temp_dir):
        df = pd.DataFrame({"centrality": [5.0, 55.0], "TPC_qx2": [0.1, -0.2]})
        path = write_event_table(df, temp_dir / "events", fmt="parquet")
        assert path.suffix == ".parquet"
        pd.testing.assert_frame_equal(read_event_table(path), df)

    def test_missing_table(self, temp_dir):
        with pytest.raises(FileNotFoundError, match="Event table not found"):
            read_event_table(temp_dir / "missing.csv")
