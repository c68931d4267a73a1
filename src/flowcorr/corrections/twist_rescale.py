"""Qn vector twist and rescale correction.

Alignment-style rotation computed from correlations collected against the
step's input vector, trusting a calibration bin only once it holds a minimum
number of entries. Events whose bin is not validated are booked, per event
class, in a "not validated entries" QA counter.
"""

import logging
from typing import Optional

from flowcorr.core.profiles import EventClassCounter
from flowcorr.core.registry import CalibrationRegistry
from flowcorr.corrections.alignment import Alignment
from flowcorr.corrections.base import CorrectionKind
from flowcorr.corrections.rotation import DEFAULT_SIGNIFICANCE

__all__ = ['TwistAndRescale', 'DEFAULT_MIN_ENTRIES']

logger = logging.getLogger(__name__)

DEFAULT_MIN_ENTRIES = 2


class TwistAndRescale(Alignment):
    """Twist-and-rescale correction step with bin validation diagnostics."""

    kind = CorrectionKind.TWIST_AND_RESCALE

    QA_NOT_VALIDATED_NAME = "TwScaleNvE"

    def __init__(self, harmonic: int, reference: Optional[str] = None,
                 all_harmonics: bool = False, min_entries: int = DEFAULT_MIN_ENTRIES,
                 significance_threshold: float = DEFAULT_SIGNIFICANCE):
        super().__init__(harmonic, reference, all_harmonics, min_entries, significance_threshold)
        self.not_validated: Optional[EventClassCounter] = None

    def create_nve_qa_histograms(self, registry: CalibrationRegistry) -> bool:
        self.not_validated = registry.add(EventClassCounter(
            f"{self.QA_NOT_VALIDATED_NAME}_{self.configuration.name}",
            self.configuration.event_classes,
        ))
        return True

    def _on_unvalidated_bin(self, bin_id: Optional[int]) -> None:
        super()._on_unvalidated_bin(bin_id)
        if self.not_validated is not None:
            self.not_validated.fill(bin_id)
