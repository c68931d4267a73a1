"""Core data structures.

- flow_vector: Qn vector value type and data-vector builder
- event_classes: Event-class binning service
- profiles: Binned calibration accumulators and diagnostic counters
- registry: Named profile collections and NetCDF persistence
"""

from flowcorr.core.flow_vector import FlowVector, FlowVectorBuilder, NORMALIZATION_METHODS
from flowcorr.core.event_classes import EventClassVariable, EventClassVariablesSet
from flowcorr.core.profiles import (
    CalibrationProfile,
    EventClassCounter,
    RECENTERING_FIELDS,
    CORRELATION_FIELDS,
)
from flowcorr.core.registry import CalibrationRegistry

__all__ = [
    "FlowVector",
    "FlowVectorBuilder",
    "NORMALIZATION_METHODS",
    "EventClassVariable",
    "EventClassVariablesSet",
    "CalibrationProfile",
    "EventClassCounter",
    "RECENTERING_FIELDS",
    "CORRELATION_FIELDS",
    "CalibrationRegistry",
]
