"""Correction step base class and lifecycle state machine.

Every correction step is identified by a name and a 4-character key. The key
codifies the step position in the chain of consecutive corrections of a
detector configuration: steps run in increasing lexical key order.

Lifecycle
---------
A step starts ``CALIBRATING``: it collects the statistics needed to produce
its correction parameters but does not touch the flow vector. Once the
statistics of a previous pass are attached (``attach_input``) it moves to
``APPLYING_AND_COLLECTING``, applying the correction while collecting fresh
statistics for a further refinement pass. Policy may demote it to
``APPLYING``. ``PASSIVE`` is an overlay entered while an external condition
is not met; leaving it restores the previous state.

Per event the configuration drives two passes over its steps:

1. ``process_corrections``: apply the correction to the current vector and
   publish the result back to the configuration.
2. ``process_data_collection``: book this event into the calibration profile,
   reading the step's *input* vector (what the step received), so the order
   of the passes never feeds a step its own output.

Both return whether the step is applied; the configuration stops its chain at
the first step that is not.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING

from flowcorr.contracts import ContractViolation, ConfigurationError, require, assert_compatible_layout
from flowcorr.core.flow_vector import FlowVector
from flowcorr.core.profiles import CalibrationProfile, RECENTERING_FIELDS, CORRELATION_FIELDS
from flowcorr.core.registry import CalibrationRegistry

if TYPE_CHECKING:
    from flowcorr.detectors.configuration import DetectorConfiguration

__all__ = ['StepState', 'CorrectionKind', 'CorrectionTraits', 'CORRECTION_TABLE', 'CorrectionStep']

logger = logging.getLogger(__name__)


class StepState(str, Enum):
    """Lifecycle state of a correction step."""
    CALIBRATING = "calibrating"
    APPLYING_AND_COLLECTING = "applying_and_collecting"
    APPLYING = "applying"
    PASSIVE = "passive"


# Forward-only ordering of the non-passive states
_STATE_RANK = {
    StepState.CALIBRATING: 0,
    StepState.APPLYING_AND_COLLECTING: 1,
    StepState.APPLYING: 2,
}


class CorrectionKind(str, Enum):
    """Available correction algorithms."""
    RECENTERING = "recentering"
    ALIGNMENT = "alignment"
    TWIST_AND_RESCALE = "twist_and_rescale"


@dataclass(frozen=True)
class CorrectionTraits:
    """Static identity of a correction kind."""
    name: str
    key: str
    support_profile: str
    corrected_vector_name: str
    fields: Tuple[str, ...]


CORRECTION_TABLE: Dict[CorrectionKind, CorrectionTraits] = {
    CorrectionKind.RECENTERING: CorrectionTraits(
        "Recentering and width equalization", "CCCC", "Qn", "rec", RECENTERING_FIELDS),
    CorrectionKind.ALIGNMENT: CorrectionTraits(
        "Alignment", "EEEE", "QnQn", "align", CORRELATION_FIELDS),
    CorrectionKind.TWIST_AND_RESCALE: CorrectionTraits(
        "Twist and rescale", "HHHH", "TwQnQn", "twist", CORRELATION_FIELDS),
}


class CorrectionStep(ABC):
    """Base class for correction steps acting on a configuration's Qn vector.

    Subclasses set ``kind`` and implement the support profile layout,
    ``_collect`` and ``_apply``.
    """

    kind: CorrectionKind
    min_entries: int = 1

    def __init__(self):
        traits = CORRECTION_TABLE[self.kind]
        require(len(traits.key) == 4, f"Correction key '{traits.key}' must have 4 characters")
        self._traits = traits
        self._state = StepState.CALIBRATING
        self._state_before_passive: Optional[StepState] = None
        self.configuration: Optional["DetectorConfiguration"] = None
        self.corrected_vector: Optional[FlowVector] = None
        self.input_vector: Optional[FlowVector] = None
        self.calibration_profile: Optional[CalibrationProfile] = None
        self.input_profile: Optional[CalibrationProfile] = None

    # ------------------------------------------------------------------
    # Identity and ordering
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._traits.name

    @property
    def key(self) -> str:
        return self._traits.key

    @property
    def state(self) -> StepState:
        return self._state

    def before(self, other: "CorrectionStep") -> bool:
        """True if this step runs before ``other`` (lexical key order)."""
        return self.key < other.key

    def _owner_name(self) -> str:
        return self.configuration.name if self.configuration is not None else "<unattached>"

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def set_configuration_owner(self, configuration: "DetectorConfiguration") -> None:
        require(
            self.configuration is None or self.configuration is configuration,
            f"{self.name} already belongs to configuration '{self._owner_name()}'",
            error=ConfigurationError,
        )
        self.configuration = configuration

    def attached_to_manager(self) -> None:
        """Hook called once the owner configuration is registered with a manager."""

    def activate_harmonics(self) -> None:
        """Hook to activate harmonics this step needs before vectors are built."""

    def create_support_data_structures(self) -> None:
        """Create the corrected vector buffer and bind the input vector."""
        cfg = self.configuration
        self.corrected_vector = FlowVector(self._traits.corrected_vector_name, cfg.harmonics)
        self.input_vector = cfg.previous_corrected_vector(self)

    @property
    @abstractmethod
    def support_profile_name(self) -> str:
        """Name of the calibration profile in a registry."""

    @abstractmethod
    def _new_profile(self) -> CalibrationProfile:
        """Empty profile with this step's layout."""

    def create_support_histograms(self, registry: CalibrationRegistry) -> bool:
        """Create the profile this step fills and add it to ``registry``."""
        self.calibration_profile = registry.add(self._new_profile())
        return True

    def create_qa_histograms(self, registry: CalibrationRegistry) -> bool:
        return True

    def create_nve_qa_histograms(self, registry: CalibrationRegistry) -> bool:
        """Create the not-validated-entries QA counters, if the step books any."""
        return True

    def attach_input(self, registry: Optional[CalibrationRegistry]) -> bool:
        """Attach calibration statistics produced by a previous pass.

        Returns False when the registry holds no profile for this step
        (calibration unavailable: the step keeps collecting). On success the
        step moves from CALIBRATING to APPLYING_AND_COLLECTING.

        Raises
        ------
        ConfigurationError
            If the profile found has a layout different from this step's.
        """
        found = registry.get(self.support_profile_name) if registry is not None else None
        if found is None:
            logger.info("%s on %s: no calibration input, collecting data",
                        self.name, self._owner_name())
            return False

        assert_compatible_layout(self._new_profile(), found)
        self.input_profile = found

        if self._current_state() is StepState.CALIBRATING:
            self._advance(StepState.APPLYING_AND_COLLECTING)
        logger.info("%s on %s going to be applied", self.name, self._owner_name())
        return True

    def after_inputs_attach_actions(self) -> None:
        """Hook called once every step had the chance to attach its inputs."""

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _current_state(self) -> StepState:
        if self._state is StepState.PASSIVE:
            return self._state_before_passive
        return self._state

    def _advance(self, new_state: StepState) -> None:
        old = self._current_state()
        if _STATE_RANK[new_state] < _STATE_RANK[old]:
            raise ContractViolation(
                f"{self.name} on {self._owner_name()}: state cannot regress from {old.value} to {new_state.value}"
            )
        if self._state is StepState.PASSIVE:
            self._state_before_passive = new_state
        else:
            self._state = new_state
        logger.debug("%s on %s: %s -> %s", self.name, self._owner_name(), old.value, new_state.value)

    def demote(self) -> bool:
        """Stop collecting while applying (APPLYING_AND_COLLECTING -> APPLYING)."""
        if self._current_state() is StepState.APPLYING_AND_COLLECTING:
            self._advance(StepState.APPLYING)
            return True
        return False

    def set_passive(self, passive: bool) -> None:
        """Enter or leave the PASSIVE overlay."""
        if passive and self._state is not StepState.PASSIVE:
            self._state_before_passive = self._state
            self._state = StepState.PASSIVE
            logger.info("%s on %s: passive, waiting for external conditions",
                        self.name, self._owner_name())
        elif not passive and self._state is StepState.PASSIVE:
            self._state = self._state_before_passive
            self._state_before_passive = None
            logger.info("%s on %s: leaving passive state, back to %s",
                        self.name, self._owner_name(), self._state.value)

    @property
    def is_being_applied(self) -> bool:
        return self._state in (StepState.APPLYING_AND_COLLECTING, StepState.APPLYING)

    @property
    def is_collecting(self) -> bool:
        return self._state in (StepState.CALIBRATING, StepState.APPLYING_AND_COLLECTING)

    @property
    def is_calibrating(self) -> bool:
        """True while no calibration is attached, also underneath the PASSIVE overlay."""
        return self._current_state() is StepState.CALIBRATING

    def report_usage(self, calibrating: List[str], applying: List[str]) -> bool:
        """Append this step's name to the lists it currently belongs to.

        Returns True if the step is being applied.
        """
        if self.is_collecting:
            calibrating.append(self.name)
        if self.is_being_applied:
            applying.append(self.name)
        return self.is_being_applied

    # ------------------------------------------------------------------
    # Per-event processing
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Reset the corrected vector buffer for a new event."""
        self.corrected_vector.reset()

    def process_data_collection(self, variable_container) -> bool:
        """Book the event into the calibration profile when collecting."""
        if self._state is StepState.PASSIVE:
            return False
        if self.is_collecting:
            bin_id = self.configuration.event_classes.get_bin(variable_container)
            self._collect(bin_id)
        return self._state is not StepState.CALIBRATING

    def process_corrections(self, variable_container) -> bool:
        """Apply the correction and publish the result as the current vector."""
        if not self.is_being_applied:
            return False

        current = self.configuration.current_vector
        if current.good_quality:
            self.corrected_vector.set(current, change_name=False)
            bin_id = self.configuration.event_classes.get_bin(variable_container)
            self._apply(current, bin_id)
        else:
            self.corrected_vector.good_quality = False

        self.configuration.update_current_vector(self.corrected_vector)
        return True

    def _validated(self, bin_id: Optional[int], harmonic: int) -> bool:
        """True when the attached input holds ``min_entries`` entries in the bin."""
        return self.input_profile.entry_count(bin_id, harmonic) >= self.min_entries

    @abstractmethod
    def _collect(self, bin_id: Optional[int]) -> None:
        """Fill the calibration profile from the step's input vector."""

    @abstractmethod
    def _apply(self, current: FlowVector, bin_id: Optional[int]) -> None:
        """Write the corrected ``current`` into ``self.corrected_vector``.

        ``self.corrected_vector`` already holds a copy of ``current``; leaving
        it untouched passes the vector through unchanged.
        """

    def include_corrected_vector(self, out: Dict[str, FlowVector]) -> None:
        out[self._traits.corrected_vector_name] = self.corrected_vector

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.key!r}, state={self._state.value}, owner={self._owner_name()!r})"
