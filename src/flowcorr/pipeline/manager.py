"""Correction manager: topology, setup and the per-event loop.

The manager owns the detectors, resolves configuration names for steps that
need a reference configuration, and drives setup and event processing. It is
single-threaded: the topology is frozen by ``setup`` before the first event
and per-event state is only touched from the calling thread.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from flowcorr.contracts import ConfigurationError, ContractViolation, require
from flowcorr.core.flow_vector import FlowVector
from flowcorr.core.registry import CalibrationRegistry
from flowcorr.detectors.configuration import DetectorConfiguration
from flowcorr.detectors.detector import Detector

__all__ = ['CorrectionManager']

logger = logging.getLogger(__name__)


class CorrectionManager:
    """Runs the correction chains of every detector configuration.

    Typical use::

        manager = CorrectionManager()
        manager.add_detector(detector)
        manager.setup(calibration_input=CalibrationRegistry.load(path))
        for event in events:
            manager.clear_event()
            manager.set_plain_vector("TPC", {2: (qx, qy)})
            manager.process_event(event_class_values)
            q = manager.corrected_vector("TPC")
        manager.calibration_output.save(out_path)

    Attributes
    ----------
    calibration_output : CalibrationRegistry
        Profiles filled during this pass; input of the next pass.

    qa_histograms : CalibrationRegistry
        Diagnostic counters (twist not-validated entries).
    """

    def __init__(self):
        self._detectors: List[Detector] = []
        self._configurations: Dict[str, DetectorConfiguration] = {}
        self.calibration_output: Optional[CalibrationRegistry] = None
        self.qa_histograms: Optional[CalibrationRegistry] = None
        self._is_setup = False
        self.n_events = 0

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------

    @property
    def detectors(self) -> Tuple[Detector, ...]:
        return tuple(self._detectors)

    @property
    def configurations(self) -> Tuple[DetectorConfiguration, ...]:
        return tuple(self._configurations.values())

    @property
    def is_setup(self) -> bool:
        return self._is_setup

    def add_detector(self, detector: Detector) -> None:
        """Register a detector and its configurations.

        Raises
        ------
        ConfigurationError
            On a duplicate detector name or configuration name, or after setup.
        """
        require(not self._is_setup, "Cannot add detectors after setup", error=ConfigurationError)
        require(
            all(d.name != detector.name for d in self._detectors),
            f"Detector '{detector.name}' already registered",
            error=ConfigurationError,
        )
        for configuration in detector.configurations:
            require(
                configuration.name not in self._configurations,
                f"Detector configuration '{configuration.name}' already registered",
                error=ConfigurationError,
            )
        self._detectors.append(detector)
        for configuration in detector.configurations:
            self._configurations[configuration.name] = configuration
        logger.info("Detector %s added with %d configuration(s)",
                    detector.name, len(detector.configurations))

    def find_configuration(self, name: str) -> Optional[DetectorConfiguration]:
        """Configuration registered under ``name``, None if there is none."""
        return self._configurations.get(name)

    def _get_configuration(self, name: str) -> DetectorConfiguration:
        configuration = self._configurations.get(name)
        if configuration is None:
            raise KeyError(f"Unknown detector configuration: {name}")
        return configuration

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def setup(self, calibration_input: Optional[CalibrationRegistry] = None,
              collect_after_apply: bool = True) -> None:
        """Build the framework and attach the previous pass's statistics.

        Phase one attaches every configuration to this manager, which
        resolves all pending reference names; all configurations are
        registered by then, so a name that still does not resolve is fatal.
        Phase two activates harmonics, builds vectors and profiles, attaches
        the calibration input and freezes the topology.

        Parameters
        ----------
        calibration_input : CalibrationRegistry, optional
            Profiles from a previous pass. None means every step calibrates.

        collect_after_apply : bool
            When False, steps that attached their input stop collecting
            (applying only).

        Raises
        ------
        ConfigurationError
            Unresolved reference, layout mismatch, or setup called twice.
        """
        require(not self._is_setup, "Correction manager already set up", error=ConfigurationError)
        require(bool(self._configurations), "No detector configurations registered",
                error=ConfigurationError)

        logger.info("Setting up %d detector configuration(s)", len(self._configurations))

        # Phase one: references
        for configuration in self._configurations.values():
            configuration.attach_manager(self)

        # Phase two: harmonics, buffers, profiles, inputs
        for configuration in self._configurations.values():
            configuration.activate_required_harmonics()
        for configuration in self._configurations.values():
            configuration.create_support_data_structures()

        self.calibration_output = CalibrationRegistry("calibration")
        self.qa_histograms = CalibrationRegistry("qa")
        for configuration in self._configurations.values():
            configuration.create_support_histograms(self.calibration_output)
            configuration.create_qa_histograms(self.qa_histograms)
            configuration.create_nve_qa_histograms(self.qa_histograms)

        if calibration_input is None:
            logger.info("No calibration input: every step collects data")
        for configuration in self._configurations.values():
            configuration.attach_correction_inputs(calibration_input)
        for configuration in self._configurations.values():
            configuration.after_inputs_attach_actions()

        if not collect_after_apply:
            for configuration in self._configurations.values():
                for step in configuration.steps:
                    step.demote()

        for configuration in self._configurations.values():
            configuration.freeze()
        self._is_setup = True

        for name, usage in self.report_usage().items():
            logger.info("%s: calibrating=%s applying=%s",
                        name, usage["calibrating"], usage["applying"])

    # ------------------------------------------------------------------
    # Per-event API
    # ------------------------------------------------------------------

    def _require_setup(self) -> None:
        if not self._is_setup:
            raise ContractViolation(
                "Correction manager not set up: call setup() before processing events"
            )

    def clear_event(self) -> None:
        """Reset every configuration for a new event."""
        self._require_setup()
        for configuration in self._configurations.values():
            configuration.clear()

    def add_data_vector(self, configuration: str, phi: float, weight: float = 1.0) -> None:
        self._get_configuration(configuration).add_data_vector(phi, weight)

    def add_data_vectors(self, configuration: str, phis: Sequence[float],
                         weights: Optional[Sequence[float]] = None) -> None:
        self._get_configuration(configuration).add_data_vectors(phis, weights)

    def set_plain_vector(self, configuration: str, components: Mapping[int, Tuple[float, float]],
                         good_quality: bool = True, multiplicity: float = 0.0) -> None:
        self._get_configuration(configuration).set_plain_vector(components, good_quality, multiplicity)

    def process_event(self, variable_container) -> None:
        """Build, correct and collect one event.

        The corrections pass runs over every configuration before any data
        collection, so reference-dependent steps collect against the final
        current vector of their reference configuration.
        """
        self._require_setup()
        configurations = self._configurations.values()
        for configuration in configurations:
            configuration.build_qn_vector()
        for configuration in configurations:
            configuration.process_corrections(variable_container)
        for configuration in configurations:
            configuration.process_data_collection(variable_container)
        self.n_events += 1

    def corrected_vector(self, configuration: str) -> FlowVector:
        """Current (most corrected) vector of ``configuration``."""
        return self._get_configuration(configuration).current_vector

    def corrected_vectors(self, configuration: str) -> Dict[str, FlowVector]:
        """Plain vector and every step's output for ``configuration``."""
        return self._get_configuration(configuration).corrected_vectors()

    def report_usage(self) -> Dict[str, Dict[str, List[str]]]:
        """Steps calibrating and applying, per configuration."""
        return {
            name: configuration.report_on_corrections()
            for name, configuration in self._configurations.items()
        }

    def __repr__(self) -> str:
        return (f"CorrectionManager(detectors={len(self._detectors)}, "
                f"configurations={list(self._configurations)}, setup={self._is_setup})")
