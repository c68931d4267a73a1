"""Calibration input contract.

Enforces the guarantee that a calibration profile attached from a previous
pass has exactly the layout the correction step would have produced.
"""

from flowcorr.contracts.base import require
from flowcorr.contracts.failure import ConfigurationError


def assert_compatible_layout(expected, found) -> None:
    """Enforce calibration layout contract.

    Parameters
    ----------
    expected : CalibrationProfile or EventClassCounter
        Profile created by the correction step for this run.

    found : CalibrationProfile or EventClassCounter
        Profile with the same name found in the calibration input.

    Raises
    ------
    ConfigurationError
        If fields, number of event-class bins or harmonic slots differ.
    """
    require(
        type(found) is type(expected),
        f"Calibration contract violated: '{expected.name}' is a "
        f"{type(found).__name__}, expected {type(expected).__name__}",
        error=ConfigurationError,
    )
    require(
        found.layout == expected.layout,
        f"Calibration contract violated: '{expected.name}' layout is "
        f"{found.layout}, expected {expected.layout}",
        error=ConfigurationError,
    )
