"""Qn vector recentering and width equalization.

Removes the event-class mean of each harmonic component, the bias introduced
by non-uniform detector acceptance, and optionally divides by the event-class
spread so all harmonics and detectors share a unit width.
"""

import logging
from typing import Optional

from flowcorr.core.flow_vector import FlowVector
from flowcorr.core.profiles import CalibrationProfile, RECENTERING_FIELDS
from flowcorr.corrections.base import CorrectionStep, CorrectionKind

__all__ = ['Recentering']

logger = logging.getLogger(__name__)


class Recentering(CorrectionStep):
    """Recentering (and width equalization) correction step.

    Parameters
    ----------
    width_equalization : bool
        Divide the recentered components by the bin spread.

    min_entries : int
        Entries a calibration bin needs before it is used.
    """

    kind = CorrectionKind.RECENTERING

    def __init__(self, width_equalization: bool = False, min_entries: int = 1):
        super().__init__()
        self.width_equalization = width_equalization
        self.min_entries = min_entries

    @property
    def support_profile_name(self) -> str:
        return f"{self._traits.support_profile}_{self.configuration.name}"

    def _new_profile(self) -> CalibrationProfile:
        return CalibrationProfile(
            self.support_profile_name,
            self.configuration.event_classes,
            RECENTERING_FIELDS,
            harmonics=self.configuration.harmonics,
            error_mode="s",
            min_entries=self.min_entries,
        )

    def _collect(self, bin_id: Optional[int]) -> None:
        source = self.input_vector
        if not source.good_quality:
            return
        for h in source.harmonics:
            self.calibration_profile.fill(bin_id, {"X": source.qx(h), "Y": source.qy(h)}, harmonic=h)

    def _apply(self, current: FlowVector, bin_id: Optional[int]) -> None:
        profile = self.input_profile
        for h in current.harmonics:
            if not self._validated(bin_id, h):
                logger.debug("Recentering on %s: bin %s harmonic %d not validated",
                             self.configuration.name, bin_id, h)
                continue

            width_x = width_y = 1.0
            if self.width_equalization:
                width_x = profile.error(bin_id, "X", h) or 1.0
                width_y = profile.error(bin_id, "Y", h) or 1.0

            self.corrected_vector.set_components(
                h,
                (current.qx(h) - profile.read(bin_id, "X", h)) / width_x,
                (current.qy(h) - profile.read(bin_id, "Y", h)) / width_y,
            )
