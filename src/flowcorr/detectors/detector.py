"""Detector: named owner of detector configurations."""

import logging
from typing import List, Optional

from flowcorr.contracts import ConfigurationError, require
from flowcorr.detectors.configuration import DetectorConfiguration

__all__ = ['Detector']

logger = logging.getLogger(__name__)


class Detector:
    """A detector and the configurations built from its data.

    Parameters
    ----------
    name : str
        Detector name.

    detector_id : int
        Numeric detector identifier.
    """

    def __init__(self, name: str, detector_id: int = 0):
        self.name = name
        self.detector_id = detector_id
        self._configurations: List[DetectorConfiguration] = []

    @property
    def configurations(self):
        return tuple(self._configurations)

    def add_configuration(self, configuration: DetectorConfiguration) -> None:
        """Take ownership of ``configuration``.

        Raises
        ------
        ConfigurationError
            If the configuration belongs to another detector or one with the
            same name is already registered.
        """
        require(
            configuration.detector is None or configuration.detector is self,
            f"Configuration '{configuration.name}' belongs to detector "
            f"'{getattr(configuration.detector, 'name', None)}', not '{self.name}'",
            error=ConfigurationError,
        )
        require(
            self.find_configuration(configuration.name) is None,
            f"Detector '{self.name}' already has a configuration named '{configuration.name}'",
            error=ConfigurationError,
        )
        configuration.detector = self
        self._configurations.append(configuration)
        logger.debug("Detector %s: configuration %s added", self.name, configuration.name)

    def find_configuration(self, name: str) -> Optional[DetectorConfiguration]:
        for configuration in self._configurations:
            if configuration.name == name:
                return configuration
        return None

    def __repr__(self) -> str:
        return f"Detector({self.name!r}, id={self.detector_id}, configurations={len(self._configurations)})"
