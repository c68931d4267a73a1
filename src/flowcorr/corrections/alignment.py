"""Qn vector alignment correction.

Rotates a detector configuration's Qn vector to remove the systematic phase
offset with respect to a reference configuration, measured at a chosen
alignment harmonic m. The reference is named at configure time and resolved
through the correction manager, either immediately when the owner
configuration is already attached or when the attach notification arrives.
"""

import logging
from typing import Optional, Tuple

from flowcorr.contracts import ConfigurationError, require
from flowcorr.core.flow_vector import FlowVector
from flowcorr.core.profiles import CalibrationProfile, CORRELATION_FIELDS
from flowcorr.corrections.base import CorrectionStep, CorrectionKind
from flowcorr.corrections.rotation import DEFAULT_SIGNIFICANCE, alignment_angle, rotate

__all__ = ['Alignment']

logger = logging.getLogger(__name__)


class Alignment(CorrectionStep):
    """Alignment of a configuration to a reference configuration.

    Parameters
    ----------
    harmonic : int
        Alignment harmonic m.

    reference : str, optional
        Name of the reference detector configuration. Can also be given
        later with ``set_reference_configuration``.

    all_harmonics : bool
        Collect correlations for every harmonic of the configuration
        (against the reference at m) instead of only m.

    min_entries : int
        Entries a calibration bin needs before it is used.

    significance_threshold : float
        Minimum significance of the XY - YX asymmetry to rotate.
    """

    kind = CorrectionKind.ALIGNMENT

    def __init__(self, harmonic: int, reference: Optional[str] = None,
                 all_harmonics: bool = False, min_entries: int = 2,
                 significance_threshold: float = DEFAULT_SIGNIFICANCE):
        super().__init__()
        if harmonic < 1:
            raise ValueError(f"Alignment harmonic must be >= 1, got {harmonic}")
        self.harmonic = int(harmonic)
        self.all_harmonics = all_harmonics
        self.min_entries = min_entries
        self.significance_threshold = significance_threshold
        self.reference_name: Optional[str] = None
        self.reference = None
        if reference:
            self.set_reference_configuration(reference)

    # ------------------------------------------------------------------
    # Reference configuration
    # ------------------------------------------------------------------

    def set_reference_configuration(self, name: str) -> None:
        """Store the reference name, resolving it now if already attached."""
        self.reference_name = name
        if self.configuration is not None and self.configuration.manager is not None:
            self._resolve_reference()

    def attached_to_manager(self) -> None:
        if self.reference_name:
            self._resolve_reference()

    def _resolve_reference(self) -> None:
        found = self.configuration.manager.find_configuration(self.reference_name)
        require(
            found is not None,
            f"Wrong reference detector configuration {self.reference_name} "
            f"for {self.configuration.name} {self.name} correction step",
            error=ConfigurationError,
        )
        require(
            found is not self.configuration,
            f"{self.name} on {self.configuration.name} cannot use itself as reference",
            error=ConfigurationError,
        )
        self.reference = found
        logger.info("%s on %s: reference configuration %s",
                    self.name, self.configuration.name, found.name)

    def activate_harmonics(self) -> None:
        require(
            self.reference is not None,
            f"{self.name} on {self._owner_name()} has no resolved reference configuration",
            error=ConfigurationError,
        )
        self.configuration.activate_harmonic(self.harmonic)
        self.reference.activate_harmonic(self.harmonic)

    def after_inputs_attach_actions(self) -> None:
        """Wait while the reference configuration is still calibrating."""
        self.set_passive(self.reference.has_calibrating_steps())

    # ------------------------------------------------------------------
    # Calibration profile
    # ------------------------------------------------------------------

    @property
    def support_profile_name(self) -> str:
        return f"{self._traits.support_profile}_{self.configuration.name}x{self.reference_name}"

    def _collected_harmonics(self) -> Tuple[int, ...]:
        if self.all_harmonics:
            return self.configuration.harmonics
        return (self.harmonic,)

    def _new_profile(self) -> CalibrationProfile:
        return CalibrationProfile(
            self.support_profile_name,
            self.configuration.event_classes,
            CORRELATION_FIELDS,
            harmonics=self._collected_harmonics(),
            error_mode="",
            min_entries=self.min_entries,
        )

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _collect(self, bin_id: Optional[int]) -> None:
        source = self.input_vector
        ref = self.reference.current_vector
        if not (source.good_quality and ref.good_quality):
            return

        m = self.harmonic
        rx, ry = ref.qx(m), ref.qy(m)
        for h in self._collected_harmonics():
            x, y = source.qx(h), source.qy(h)
            self.calibration_profile.fill(
                bin_id, {"XX": x * rx, "XY": x * ry, "YX": y * rx, "YY": y * ry}, harmonic=h
            )

    def _apply(self, current: FlowVector, bin_id: Optional[int]) -> None:
        if not self.reference.current_vector.good_quality:
            self.corrected_vector.good_quality = False
            return

        profile = self.input_profile
        m = self.harmonic
        if not self._validated(bin_id, m):
            self._on_unvalidated_bin(bin_id)
            return

        delta_phi = alignment_angle(
            profile.read(bin_id, "XX", m),
            profile.read(bin_id, "XY", m),
            profile.read(bin_id, "YX", m),
            profile.read(bin_id, "YY", m),
            profile.error(bin_id, "XY", m),
            profile.error(bin_id, "YX", m),
            m,
            self.significance_threshold,
        )
        if delta_phi is None:
            logger.debug("%s on %s: bin %s correction not significant",
                         self.name, self.configuration.name, bin_id)
            return

        rotate(current, self.corrected_vector, delta_phi)

    def _on_unvalidated_bin(self, bin_id: Optional[int]) -> None:
        logger.debug("%s on %s: bin %s not validated",
                     self.name, self.configuration.name, bin_id)
