"""Flow vector (Qn vector) value type and data-vector builder.

A flow vector holds, for a sparse set of harmonics, the (Qx, Qy) components
summarizing the azimuthal distribution of the particles of one event in one
detector configuration, together with a quality flag and a provenance label.

Harmonic membership is fixed at construction; only coordinates, quality and
label change afterwards. Vectors are created at setup and reset every event,
never reallocated in the event loop.
"""

import math
import logging
from typing import Dict, Iterable, Optional, Tuple

import numpy as np

__all__ = ['FlowVector', 'FlowVectorBuilder', 'NORMALIZATION_METHODS']

logger = logging.getLogger(__name__)

NORMALIZATION_METHODS = ("none", "QoverM", "QoverSqrtM", "QoverQlength")


class FlowVector:
    """Per-harmonic (Qx, Qy) components with quality flag.

    Parameters
    ----------
    name : str
        Display label. Correction steps label their output with a short
        tag ("rec", "align", "twist") that travels with the vector when
        published as the configuration's current vector.

    harmonics : iterable of int
        Active harmonic numbers (each >= 1). Stored sorted and unique.
    """

    def __init__(self, name: str, harmonics: Iterable[int]):
        harmonics = tuple(sorted(set(int(h) for h in harmonics)))
        if not harmonics:
            raise ValueError("FlowVector needs at least one harmonic")
        if harmonics[0] < 1:
            raise ValueError(f"Harmonics must be >= 1, got {harmonics}")

        self.name = name
        self._harmonics = harmonics
        size = harmonics[-1] + 1
        self._active = np.zeros(size, dtype=bool)
        self._active[list(harmonics)] = True
        self._qx = np.zeros(size, dtype=np.float64)
        self._qy = np.zeros(size, dtype=np.float64)
        self.multiplicity = 0.0
        self.good_quality = True

    @property
    def harmonics(self) -> Tuple[int, ...]:
        """Active harmonics in increasing order."""
        return self._harmonics

    def has_harmonic(self, harmonic: int) -> bool:
        return 0 < harmonic < self._active.size and bool(self._active[harmonic])

    def _check(self, harmonic: int) -> None:
        if not self.has_harmonic(harmonic):
            raise KeyError(f"Harmonic {harmonic} not active in flow vector '{self.name}'")

    def qx(self, harmonic: int) -> float:
        self._check(harmonic)
        return float(self._qx[harmonic])

    def qy(self, harmonic: int) -> float:
        self._check(harmonic)
        return float(self._qy[harmonic])

    def set_qx(self, harmonic: int, value: float) -> None:
        self._check(harmonic)
        self._qx[harmonic] = value

    def set_qy(self, harmonic: int, value: float) -> None:
        self._check(harmonic)
        self._qy[harmonic] = value

    def set_components(self, harmonic: int, qx: float, qy: float) -> None:
        self._check(harmonic)
        self._qx[harmonic] = qx
        self._qy[harmonic] = qy

    def magnitude(self, harmonic: int) -> float:
        return math.hypot(self.qx(harmonic), self.qy(harmonic))

    def event_plane(self, harmonic: int) -> float:
        """Event plane angle ``atan2(Qy, Qx) / h`` in (-pi/h, pi/h]."""
        return math.atan2(self.qy(harmonic), self.qx(harmonic)) / harmonic

    def reset(self) -> None:
        """Zero the coordinates and mark the vector as good quality."""
        self._qx[:] = 0.0
        self._qy[:] = 0.0
        self.multiplicity = 0.0
        self.good_quality = True

    def set(self, other: "FlowVector", change_name: bool = True) -> None:
        """Copy coordinates and quality from ``other``.

        Only harmonics active in both vectors are copied. The label is copied
        only when ``change_name`` is True.
        """
        common = min(self._active.size, other._active.size)
        mask = self._active[:common] & other._active[:common]
        self._qx[:common][mask] = other._qx[:common][mask]
        self._qy[:common][mask] = other._qy[:common][mask]
        self.multiplicity = other.multiplicity
        self.good_quality = other.good_quality
        if change_name:
            self.name = other.name

    def as_dict(self) -> Dict[str, float]:
        """Flat ``{qx<h>: .., qy<h>: .., good: ..}`` view for tabular export."""
        out = {}
        for h in self._harmonics:
            out[f"qx{h}"] = float(self._qx[h])
            out[f"qy{h}"] = float(self._qy[h])
        out["good"] = self.good_quality
        return out

    def __repr__(self) -> str:
        comps = ", ".join(f"{h}:({self._qx[h]:.4g},{self._qy[h]:.4g})" for h in self._harmonics)
        quality = "good" if self.good_quality else "bad"
        return f"FlowVector({self.name!r}, {comps}, {quality})"


class FlowVectorBuilder:
    """Accumulates data vectors into an unnormalized Qn vector.

    Each data vector contributes ``w*cos(h*phi)`` and ``w*sin(h*phi)`` for
    every active harmonic, and ``w`` to the sum of weights M.
    """

    def __init__(self, harmonics: Iterable[int], min_data_vectors: int = 1):
        self._harmonics = np.array(sorted(set(int(h) for h in harmonics)), dtype=np.float64)
        self.min_data_vectors = min_data_vectors
        self.reset()

    def reset(self) -> None:
        self._sum_x = np.zeros(self._harmonics.size)
        self._sum_y = np.zeros(self._harmonics.size)
        self.sum_of_weights = 0.0
        self.n_data_vectors = 0

    def add(self, phi: float, weight: float = 1.0) -> None:
        angles = self._harmonics * phi
        self._sum_x += weight * np.cos(angles)
        self._sum_y += weight * np.sin(angles)
        self.sum_of_weights += weight
        self.n_data_vectors += 1

    def add_many(self, phis, weights: Optional[np.ndarray] = None) -> None:
        """Vectorized ``add`` over arrays of azimuths and weights."""
        phis = np.asarray(phis, dtype=np.float64)
        if weights is None:
            weights = np.ones_like(phis)
        weights = np.asarray(weights, dtype=np.float64)
        angles = np.outer(phis, self._harmonics)
        self._sum_x += weights @ np.cos(angles)
        self._sum_y += weights @ np.sin(angles)
        self.sum_of_weights += float(weights.sum())
        self.n_data_vectors += int(phis.size)

    def fill(self, vector: FlowVector, normalization: str = "QoverM") -> None:
        """Write the normalized Qn vector into ``vector``.

        Parameters
        ----------
        vector : FlowVector
            Destination, typically the configuration's plain vector.

        normalization : str
            One of ``NORMALIZATION_METHODS``.
        """
        if normalization not in NORMALIZATION_METHODS:
            raise ValueError(f"Unknown Qn normalization method: {normalization}")

        vector.multiplicity = self.sum_of_weights
        good = self.n_data_vectors >= self.min_data_vectors and self.sum_of_weights > 0
        vector.good_quality = good
        if not good:
            return

        for i, h in enumerate(self._harmonics.astype(int)):
            qx, qy = self._sum_x[i], self._sum_y[i]
            if normalization == "QoverM":
                norm = self.sum_of_weights
            elif normalization == "QoverSqrtM":
                norm = math.sqrt(self.sum_of_weights)
            elif normalization == "QoverQlength":
                norm = math.hypot(qx, qy)
            else:
                norm = 1.0
            if norm > 0:
                vector.set_components(h, qx / norm, qy / norm)
            else:
                vector.set_components(h, 0.0, 0.0)
