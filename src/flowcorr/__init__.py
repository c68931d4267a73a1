"""`flowcorr` - Flow vector (Qn) corrections for non-uniform detector acceptance.

Subpackages:
- core: Flow vectors, event-class binning, calibration profiles
- corrections: Recentering, alignment, twist-and-rescale steps
- detectors: Detector configurations driving the correction chain
- pipeline: Correction manager, config builder, event-table runner
"""

__version__ = "0.1.0"
