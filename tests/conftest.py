"""Root-level pytest fixtures for flowcorr test suite.

Provides shared configuration fixtures following Pydantic-based architecture,
plus small topology factories for correction step tests.
"""

import pytest
from pathlib import Path
import tempfile
import shutil

from flowcorr.core import EventClassVariable, EventClassVariablesSet
from flowcorr.detectors import Detector, DetectorConfiguration
from flowcorr.pipeline import CorrectionManager
from flowcorr.schemas import ParamConfig, UserConfig, resolve_config
from flowcorr.setup_directories import setup_output_directories


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults.

    Use this as the base for all test configs. Override specific values
    using user_config or by creating custom UserConfig instances.
    """
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides)."""
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_custom_threshold(make_config):
    ...     config = make_config(SIGNIFICANCE_THRESHOLD=3)
    ...     assert config.corrections.significance_threshold == 3.0
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if user_overrides:
            user = UserConfig(**user_overrides)
            return resolve_config(param_config, user, None)
        else:
            return resolve_config(param_config, None, None)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def output_dirs(temp_dir):
    """Standard flowcorr output directory structure.

    Returns dict with keys: base, calibration, corrected, qa, logs
    """
    return setup_output_directories(temp_dir)


# =============================================================================
# Topology Fixtures
# =============================================================================

@pytest.fixture
def single_bin():
    """One event class covering centrality 0-100."""
    return EventClassVariablesSet([EventClassVariable(0, "centrality", [0.0, 100.0])])


@pytest.fixture
def make_manager(single_bin):
    """Factory for a manager with one detector and the given configurations.

    Each configuration is ``(name, harmonics, steps)``. Steps are stateful,
    so every pass needs fresh step instances.

    Examples
    --------
    >>> manager = make_manager(("A", [2], [Alignment(2, "B")]), ("B", [2], []))
    """
    def _make(*configurations, event_classes=None):
        event_classes = event_classes or single_bin
        detector = Detector("DET", 0)
        for name, harmonics, steps in configurations:
            configuration = DetectorConfiguration(name, event_classes, harmonics)
            for step in steps:
                configuration.add_correction_step(step)
            detector.add_configuration(configuration)
        manager = CorrectionManager()
        manager.add_detector(detector)
        return manager

    return _make


@pytest.fixture
def run_events():
    """Feed plain vectors through a set-up manager.

    ``events`` is a sequence of ``{configuration: {h: (qx, qy)}}`` dicts; a
    value may also be ``({h: (qx, qy)}, good_quality)``.
    """
    def _run(manager, events, variables=(50.0,)):
        for vectors in events:
            manager.clear_event()
            for name, components in vectors.items():
                good = True
                if isinstance(components, tuple):
                    components, good = components
                manager.set_plain_vector(name, components, good_quality=good)
            manager.process_event(variables)

    return _run
