"""Event-class binning service.

An event class is a multidimensional bin over global event variables
(centrality, vertex position, ...). Calibration statistics are collected and
read per event class so events with similar detector response share
correction parameters. Correction steps never bin events themselves; they ask
the configuration's ``EventClassVariablesSet`` for the bin of the current
variable container.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

__all__ = ['EventClassVariable', 'EventClassVariablesSet']

logger = logging.getLogger(__name__)


class EventClassVariable:
    """One binned event variable.

    Parameters
    ----------
    variable_id : int
        Index of the variable in the per-event variable container.

    label : str
        Human-readable name (also used for persisted coordinates).

    edges : sequence of float
        Strictly increasing bin edges, at least two.
    """

    def __init__(self, variable_id: int, label: str, edges: Sequence[float]):
        edges = np.asarray(edges, dtype=np.float64)
        if edges.ndim != 1 or edges.size < 2:
            raise ValueError(f"Event class variable '{label}' needs at least two bin edges")
        if np.any(np.diff(edges) <= 0):
            raise ValueError(f"Event class variable '{label}' bin edges must be strictly increasing")

        self.variable_id = int(variable_id)
        self.label = label
        self.edges = edges

    @classmethod
    def uniform(cls, variable_id: int, label: str, n_bins: int,
                low: float, high: float) -> "EventClassVariable":
        """Equal-width binning between ``low`` and ``high``."""
        return cls(variable_id, label, np.linspace(low, high, n_bins + 1))

    @property
    def n_bins(self) -> int:
        return self.edges.size - 1

    def find_bin(self, value: float) -> Optional[int]:
        """Bin index of ``value``, or None when under/overflow.

        Bins are half-open ``[low, high)`` except the last one, which
        includes its upper edge.
        """
        if not np.isfinite(value) or value < self.edges[0] or value > self.edges[-1]:
            return None
        if value == self.edges[-1]:
            return self.n_bins - 1
        return int(np.searchsorted(self.edges, value, side="right")) - 1

    def __repr__(self) -> str:
        return (f"EventClassVariable({self.variable_id}, {self.label!r}, "
                f"{self.n_bins} bins [{self.edges[0]}, {self.edges[-1]}])")


class EventClassVariablesSet:
    """Ordered set of event-class variables defining the calibration bins.

    Bin ids are flat, row-major over the variables in the order given.
    """

    def __init__(self, variables: Sequence[EventClassVariable]):
        if not variables:
            raise ValueError("EventClassVariablesSet needs at least one variable")
        self.variables = tuple(variables)
        self.shape = tuple(v.n_bins for v in self.variables)

    @property
    def n_bins(self) -> int:
        return int(np.prod(self.shape))

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(v.label for v in self.variables)

    def get_bin(self, variable_container) -> Optional[int]:
        """Flat bin id for the event described by ``variable_container``.

        Returns None when any variable falls outside its binning range.
        """
        indices = []
        for var in self.variables:
            idx = var.find_bin(float(variable_container[var.variable_id]))
            if idx is None:
                return None
            indices.append(idx)
        return int(np.ravel_multi_index(tuple(indices), self.shape))

    def bin_centers(self, bin_id: int) -> Tuple[float, ...]:
        """Center of each variable's bin for flat ``bin_id``."""
        indices = np.unravel_index(bin_id, self.shape)
        return tuple(
            float(0.5 * (var.edges[i] + var.edges[i + 1]))
            for var, i in zip(self.variables, indices)
        )

    def __repr__(self) -> str:
        return f"EventClassVariablesSet({', '.join(self.labels)}; {self.n_bins} bins)"
