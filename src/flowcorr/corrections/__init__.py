"""Qn vector correction steps.

- base: Step lifecycle state machine and correction kind table
- rotation: Alignment angle, significance test, vector rotation
- recentering: Recentering and width equalization
- alignment: Alignment to a reference configuration
- twist_rescale: Validated alignment-style correction with QA counters
"""

from flowcorr.corrections.base import (
    StepState,
    CorrectionKind,
    CorrectionTraits,
    CORRECTION_TABLE,
    CorrectionStep,
)
from flowcorr.corrections.recentering import Recentering
from flowcorr.corrections.alignment import Alignment
from flowcorr.corrections.twist_rescale import TwistAndRescale

STEP_CLASSES = {
    CorrectionKind.RECENTERING: Recentering,
    CorrectionKind.ALIGNMENT: Alignment,
    CorrectionKind.TWIST_AND_RESCALE: TwistAndRescale,
}


def create_step(kind, **params) -> CorrectionStep:
    """Instantiate the correction step class registered for ``kind``."""
    return STEP_CLASSES[CorrectionKind(kind)](**params)


__all__ = [
    "StepState",
    "CorrectionKind",
    "CorrectionTraits",
    "CORRECTION_TABLE",
    "CorrectionStep",
    "Recentering",
    "Alignment",
    "TwistAndRescale",
    "STEP_CLASSES",
    "create_step",
]
