"""Build a correction manager from the resolved runtime configuration."""

import logging
from typing import TYPE_CHECKING

from flowcorr.core.event_classes import EventClassVariable, EventClassVariablesSet
from flowcorr.corrections import CorrectionKind, CorrectionStep, create_step
from flowcorr.detectors import Detector, DetectorConfiguration
from flowcorr.pipeline.manager import CorrectionManager

if TYPE_CHECKING:
    from flowcorr.schemas import InternalConfig
    from flowcorr.schemas.internal import InternalCorrectionConfig

__all__ = ['build_event_classes', 'build_step', 'build_manager']

logger = logging.getLogger(__name__)


def build_event_classes(config: "InternalConfig") -> EventClassVariablesSet:
    """Event-class binning shared by every configuration of the run."""
    return EventClassVariablesSet([
        EventClassVariable(ec.variable_id, ec.label, ec.edges)
        for ec in config.event_classes
    ])


def build_step(correction: "InternalCorrectionConfig") -> CorrectionStep:
    """Instantiate the correction step described by ``correction``."""
    kind = CorrectionKind(correction.kind)
    if kind is CorrectionKind.RECENTERING:
        return create_step(
            kind,
            width_equalization=correction.width_equalization,
            min_entries=correction.min_entries,
        )
    return create_step(
        kind,
        harmonic=correction.harmonic,
        reference=correction.reference,
        all_harmonics=correction.all_harmonics,
        min_entries=correction.min_entries,
        significance_threshold=correction.significance_threshold,
    )


def build_manager(config: "InternalConfig") -> CorrectionManager:
    """Create detectors, configurations and steps; the manager is not set up yet.

    Parameters
    ----------
    config : InternalConfig
        Resolved runtime configuration.

    Returns
    -------
    CorrectionManager
        Manager holding the full topology. Call ``setup`` before processing.
    """
    event_classes = build_event_classes(config)
    manager = CorrectionManager()

    for detector_cfg in config.detectors:
        detector = Detector(detector_cfg.name, detector_cfg.detector_id)
        for cfg in detector_cfg.configurations:
            configuration = DetectorConfiguration(
                cfg.name,
                event_classes,
                cfg.harmonics,
                normalization=cfg.normalization,
                min_data_vectors=cfg.min_data_vectors,
                detector=detector,
            )
            for correction in cfg.corrections:
                configuration.add_correction_step(build_step(correction))
            detector.add_configuration(configuration)
        manager.add_detector(detector)

    logger.info("Built %d detector(s), %d configuration(s)",
                len(manager.detectors), len(manager.configurations))
    return manager
