"""Detectors and their Qn vector configurations."""

from flowcorr.detectors.configuration import DetectorConfiguration
from flowcorr.detectors.detector import Detector

__all__ = ['DetectorConfiguration', 'Detector']
