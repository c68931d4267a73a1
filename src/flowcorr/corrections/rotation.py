"""Alignment angle, significance test and Qn vector rotation.

Shared by the alignment and twist-and-rescale steps. For the correlation
averages XX, XY, YX, YY between a detector at harmonic h and a reference at
the alignment harmonic m, the phase offset is

    deltaPhi = -atan2(XY - YX, XX + YY) / m

and it is only corrected when the asymmetry XY - YX is significant:

    sqrt((XY - YX)^2 / (eXY^2 + eYX^2)) >= threshold
"""

import math
from typing import Optional

from flowcorr.core.flow_vector import FlowVector

__all__ = ['DEFAULT_SIGNIFICANCE', 'significance', 'alignment_angle', 'rotate']

DEFAULT_SIGNIFICANCE = 2.0


def significance(xy: float, yx: float, e_xy: float, e_yx: float) -> float:
    """Significance of the XY - YX asymmetry in units of its error.

    A vanishing error gives infinite significance for a non-zero asymmetry
    and zero significance otherwise.
    """
    numerator = (xy - yx) ** 2
    denominator = e_xy * e_xy + e_yx * e_yx
    if denominator <= 0.0:
        return math.inf if numerator > 0.0 else 0.0
    return math.sqrt(numerator / denominator)


def alignment_angle(xx: float, xy: float, yx: float, yy: float,
                    e_xy: float, e_yx: float, harmonic: int,
                    threshold: float = DEFAULT_SIGNIFICANCE) -> Optional[float]:
    """Rotation angle aligning a detector to its reference.

    Returns None when the asymmetry is below ``threshold`` standard
    deviations; the vector is then left as it is.
    """
    if significance(xy, yx, e_xy, e_yx) < threshold:
        return None
    return -math.atan2(xy - yx, xx + yy) / harmonic


def rotate(source: FlowVector, target: FlowVector, delta_phi: float) -> None:
    """Rotate every harmonic h of ``source`` by h * delta_phi into ``target``.

    ``Qx' = Qx cos(h dphi) + Qy sin(h dphi)``,
    ``Qy' = Qy cos(h dphi) - Qx sin(h dphi)``.
    """
    for h in source.harmonics:
        qx, qy = source.qx(h), source.qy(h)
        c, s = math.cos(h * delta_phi), math.sin(h * delta_phi)
        target.set_components(h, qx * c + qy * s, qy * c - qx * s)
