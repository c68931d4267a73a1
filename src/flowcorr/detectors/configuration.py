"""Detector configuration: owner of the Qn vectors and the correction chain.

A detector configuration is one way of building a Qn vector out of a
detector (a set of harmonics, an event-class binning, a normalization) plus
the ordered list of correction steps applied to it. Per event it is cleared,
its plain Qn vector built, and its steps run in increasing key order. The
current vector always holds the output of the last step that has run.
"""

import bisect
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TYPE_CHECKING

from flowcorr.contracts import ConfigurationError, require
from flowcorr.core.event_classes import EventClassVariablesSet
from flowcorr.core.flow_vector import FlowVector, FlowVectorBuilder, NORMALIZATION_METHODS
from flowcorr.core.registry import CalibrationRegistry
from flowcorr.corrections.base import CorrectionStep

if TYPE_CHECKING:
    from flowcorr.detectors.detector import Detector
    from flowcorr.pipeline.manager import CorrectionManager

__all__ = ['DetectorConfiguration']

logger = logging.getLogger(__name__)

PLAIN_VECTOR_NAME = "plain"


class DetectorConfiguration:
    """Qn vector building and correction chain for one detector setup.

    Parameters
    ----------
    name : str
        Unique configuration name; reference steps look it up by this name.

    event_classes : EventClassVariablesSet
        Event-class binning for the calibration profiles of all steps.

    harmonics : iterable of int
        Harmonics of the Qn vectors. Steps may activate more at setup.

    normalization : str
        Plain Qn vector normalization, one of ``NORMALIZATION_METHODS``.

    min_data_vectors : int
        Data vectors needed for a good-quality plain Qn vector.

    detector : Detector, optional
        Owning detector.
    """

    def __init__(self, name: str, event_classes: EventClassVariablesSet,
                 harmonics: Iterable[int], normalization: str = "QoverM",
                 min_data_vectors: int = 1, detector: Optional["Detector"] = None):
        harmonics = set(int(h) for h in harmonics)
        if not harmonics or min(harmonics) < 1:
            raise ValueError(f"Configuration '{name}' needs harmonics >= 1, got {sorted(harmonics)}")
        if normalization not in NORMALIZATION_METHODS:
            raise ValueError(f"Unknown Qn normalization method: {normalization}")

        self.name = name
        self.event_classes = event_classes
        self.normalization = normalization
        self.min_data_vectors = min_data_vectors
        self.detector = detector
        self.manager: Optional["CorrectionManager"] = None

        self._harmonics = harmonics
        self._steps: List[CorrectionStep] = []
        self._frozen = False

        self.plain_vector: Optional[FlowVector] = None
        self.current_vector: Optional[FlowVector] = None
        self._builder: Optional[FlowVectorBuilder] = None
        self._plain_preset = False

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------

    @property
    def harmonics(self) -> Tuple[int, ...]:
        return tuple(sorted(self._harmonics))

    @property
    def steps(self) -> Tuple[CorrectionStep, ...]:
        return tuple(self._steps)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _require_mutable(self, what: str) -> None:
        require(
            not self._frozen,
            f"Configuration '{self.name}' is frozen: cannot {what} once processing begins",
            error=ConfigurationError,
        )

    def activate_harmonic(self, harmonic: int) -> None:
        """Make sure ``harmonic`` is processed by this configuration."""
        if harmonic in self._harmonics:
            return
        self._require_mutable(f"activate harmonic {harmonic}")
        require(
            self.plain_vector is None,
            f"Configuration '{self.name}': harmonic {harmonic} activated after vectors were created",
            error=ConfigurationError,
        )
        self._harmonics.add(int(harmonic))
        logger.info("Configuration %s: harmonic %d activated", self.name, harmonic)

    def add_correction_step(self, step: CorrectionStep) -> None:
        """Insert ``step`` in key order.

        Raises
        ------
        ConfigurationError
            If a step with the same name or key is already present, or the
            configuration is frozen.
        """
        self._require_mutable(f"add {step.name}")
        for existing in self._steps:
            require(
                existing.name != step.name,
                f"Configuration '{self.name}' already has a '{step.name}' correction step",
                error=ConfigurationError,
            )
            require(
                existing.key != step.key,
                f"Configuration '{self.name}': correction key '{step.key}' of '{step.name}' "
                f"already used by '{existing.name}'",
                error=ConfigurationError,
            )

        step.set_configuration_owner(self)
        position = bisect.bisect_left([s.key for s in self._steps], step.key)
        self._steps.insert(position, step)
        logger.debug("Configuration %s: %s added at position %d", self.name, step.name, position)

        if self.manager is not None:
            step.attached_to_manager()

    def attach_manager(self, manager: "CorrectionManager") -> None:
        """Register the owning manager and notify the steps."""
        require(
            self.manager is None or self.manager is manager,
            f"Configuration '{self.name}' already attached to another manager",
            error=ConfigurationError,
        )
        self.manager = manager
        for step in self._steps:
            step.attached_to_manager()

    def previous_corrected_vector(self, step: CorrectionStep) -> FlowVector:
        """Output of the step before ``step``, or the plain vector for the first step."""
        index = self._steps.index(step)
        if index == 0:
            return self.plain_vector
        return self._steps[index - 1].corrected_vector

    def has_calibrating_steps(self) -> bool:
        return any(step.is_calibrating for step in self._steps)

    def is_correction_step_being_applied(self, name: str) -> bool:
        return any(step.name == name and step.is_being_applied for step in self._steps)

    # ------------------------------------------------------------------
    # Setup phases, driven by the manager
    # ------------------------------------------------------------------

    def activate_required_harmonics(self) -> None:
        for step in self._steps:
            step.activate_harmonics()

    def create_support_data_structures(self) -> None:
        harmonics = self.harmonics
        self.plain_vector = FlowVector(PLAIN_VECTOR_NAME, harmonics)
        self.current_vector = FlowVector(PLAIN_VECTOR_NAME, harmonics)
        self._builder = FlowVectorBuilder(harmonics, self.min_data_vectors)
        for step in self._steps:
            step.create_support_data_structures()

    def create_support_histograms(self, registry: CalibrationRegistry) -> bool:
        return all([step.create_support_histograms(registry) for step in self._steps])

    def create_qa_histograms(self, registry: CalibrationRegistry) -> bool:
        return all([step.create_qa_histograms(registry) for step in self._steps])

    def create_nve_qa_histograms(self, registry: CalibrationRegistry) -> bool:
        return all([step.create_nve_qa_histograms(registry) for step in self._steps])

    def attach_correction_inputs(self, registry: Optional[CalibrationRegistry]) -> bool:
        """Offer the calibration input to every step; True if any attached."""
        return any([step.attach_input(registry) for step in self._steps])

    def after_inputs_attach_actions(self) -> None:
        for step in self._steps:
            step.after_inputs_attach_actions()

    def freeze(self) -> None:
        self._frozen = True

    # ------------------------------------------------------------------
    # Per-event processing
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Reset vectors and data vectors for a new event."""
        self.plain_vector.reset()
        self.current_vector.reset()
        self.current_vector.name = PLAIN_VECTOR_NAME
        self._builder.reset()
        self._plain_preset = False
        for step in self._steps:
            step.clear()

    def add_data_vector(self, phi: float, weight: float = 1.0) -> None:
        self._builder.add(phi, weight)

    def add_data_vectors(self, phis: Sequence[float], weights: Optional[Sequence[float]] = None) -> None:
        self._builder.add_many(phis, weights)

    def set_plain_vector(self, components: Mapping[int, Tuple[float, float]],
                         good_quality: bool = True, multiplicity: float = 0.0) -> None:
        """Provide an already built plain Qn vector for this event."""
        for h, (qx, qy) in components.items():
            self.plain_vector.set_components(h, qx, qy)
        self.plain_vector.good_quality = good_quality
        self.plain_vector.multiplicity = multiplicity
        self._plain_preset = True

    def build_qn_vector(self) -> None:
        """Build the plain vector (unless preset) and start the chain from it."""
        if not self._plain_preset:
            self._builder.fill(self.plain_vector, self.normalization)
        self.current_vector.set(self.plain_vector, change_name=True)

    def update_current_vector(self, vector: FlowVector, change_name: bool = True) -> None:
        """Publish a step output as the current vector (label tracks provenance)."""
        self.current_vector.set(vector, change_name)

    def process_corrections(self, variable_container) -> bool:
        """Run the corrections pass; stops at the first step not applied."""
        for step in self._steps:
            if not step.process_corrections(variable_container):
                return False
        return True

    def process_data_collection(self, variable_container) -> bool:
        """Run the data-collection pass; stops at the first step not applied."""
        for step in self._steps:
            if not step.process_data_collection(variable_container):
                return False
        return True

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def corrected_vectors(self) -> Dict[str, FlowVector]:
        """Plain vector plus every step's output, keyed by label."""
        out = {PLAIN_VECTOR_NAME: self.plain_vector}
        for step in self._steps:
            step.include_corrected_vector(out)
        return out

    def report_on_corrections(self) -> Dict[str, List[str]]:
        calibrating: List[str] = []
        applying: List[str] = []
        for step in self._steps:
            step.report_usage(calibrating, applying)
        return {
            "steps": [step.name for step in self._steps],
            "calibrating": calibrating,
            "applying": applying,
        }

    def __repr__(self) -> str:
        return (f"DetectorConfiguration({self.name!r}, harmonics={self.harmonics}, "
                f"steps={[s.key for s in self._steps]})")
