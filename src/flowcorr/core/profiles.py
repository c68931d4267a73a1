"""Event-class binned calibration profiles.

A ``CalibrationProfile`` accumulates, per event-class bin and harmonic slot,
the raw sums needed to derive correction parameters: Σv, Σv² and the number
of entries for each named field. Means and errors are derived on read, so
profiles from independent jobs can be merged by plain summation.

Two layouts are used by the correction steps:

- recentering: fields ``X``, ``Y`` per harmonic, errors are the spread
  (``error_mode="s"``) so they double as width-equalization factors
- alignment / twist-and-rescale: fields ``XX``, ``XY``, ``YX``, ``YY``,
  errors are the error of the mean

``EventClassCounter`` is the per-bin diagnostic counter used to book events
whose calibration bin was not validated.
"""

import math
import logging
from typing import Dict, Iterable, Mapping, Optional, Sequence

import numpy as np

from flowcorr.core.event_classes import EventClassVariablesSet

__all__ = ['CalibrationProfile', 'EventClassCounter',
           'RECENTERING_FIELDS', 'CORRELATION_FIELDS']

logger = logging.getLogger(__name__)

RECENTERING_FIELDS = ("X", "Y")
CORRELATION_FIELDS = ("XX", "XY", "YX", "YY")

ERROR_MODES = ("", "s")


class CalibrationProfile:
    """Binned accumulator of per-field sums, sums of squares and entries.

    Parameters
    ----------
    name : str
        Unique name within a calibration registry.

    event_classes : EventClassVariablesSet
        Binning of the events.

    fields : sequence of str
        Names of the accumulated quantities.

    harmonics : iterable of int, optional
        Harmonic slots. Slot 0 is always present and used by non-harmonic
        quantities. Default: only slot 0.

    error_mode : {"", "s"}
        ``""``: error of the mean (spread / sqrt(n)); ``"s"``: spread.

    min_entries : int
        Minimum entries for a bin to be validated.
    """

    def __init__(self, name: str, event_classes: EventClassVariablesSet,
                 fields: Sequence[str], harmonics: Iterable[int] = (),
                 error_mode: str = "", min_entries: int = 1):
        if error_mode not in ERROR_MODES:
            raise ValueError(f"Unknown profile error mode: {error_mode!r}")
        if min_entries < 1:
            raise ValueError(f"min_entries must be >= 1, got {min_entries}")

        self.name = name
        self.event_classes = event_classes
        self.fields = tuple(fields)
        self._field_index = {f: i for i, f in enumerate(self.fields)}
        self.harmonics = tuple(sorted(set(int(h) for h in harmonics) | {0}))
        self.error_mode = error_mode
        self.min_entries = int(min_entries)

        shape = (len(self.fields), event_classes.n_bins, self.harmonics[-1] + 1)
        self._sum = np.zeros(shape, dtype=np.float64)
        self._sum2 = np.zeros(shape, dtype=np.float64)
        self._entries = np.zeros(shape, dtype=np.float64)

    @property
    def layout(self):
        """Fields, number of bins and harmonic slots; attach compares these."""
        return (self.fields, self.event_classes.n_bins, self.harmonics)

    def is_compatible(self, other: "CalibrationProfile") -> bool:
        return isinstance(other, CalibrationProfile) and self.layout == other.layout

    def get_bin(self, variable_container) -> Optional[int]:
        return self.event_classes.get_bin(variable_container)

    def fill(self, bin_id: Optional[int], values: Mapping[str, float], harmonic: int = 0) -> None:
        """Accumulate one entry per field in ``values``.

        Events outside the binning range (``bin_id`` None) are not booked.
        """
        if bin_id is None:
            return
        for field, value in values.items():
            i = self._field_index[field]
            self._sum[i, bin_id, harmonic] += value
            self._sum2[i, bin_id, harmonic] += value * value
            self._entries[i, bin_id, harmonic] += 1.0

    def _cell(self, bin_id: int, field: str, harmonic: int):
        i = self._field_index[field]
        return (self._sum[i, bin_id, harmonic],
                self._sum2[i, bin_id, harmonic],
                self._entries[i, bin_id, harmonic])

    def sum(self, bin_id: int, field: str, harmonic: int = 0) -> float:
        return float(self._cell(bin_id, field, harmonic)[0])

    def entry_count(self, bin_id: Optional[int], harmonic: int = 0, field: Optional[str] = None) -> int:
        """Entries booked in ``bin_id`` (for ``field``, default the first field)."""
        if bin_id is None:
            return 0
        return int(self._cell(bin_id, field or self.fields[0], harmonic)[2])

    def validated(self, bin_id: Optional[int], harmonic: int = 0) -> bool:
        """True once the bin holds at least ``min_entries`` entries."""
        return self.entry_count(bin_id, harmonic) >= self.min_entries

    def read(self, bin_id: int, field: str, harmonic: int = 0) -> float:
        """Mean of ``field`` in the bin; 0 for an empty bin."""
        total, _, n = self._cell(bin_id, field, harmonic)
        if n == 0:
            return 0.0
        return float(total / n)

    def error(self, bin_id: int, field: str, harmonic: int = 0) -> float:
        """Spread or error of the mean, according to ``error_mode``."""
        total, total2, n = self._cell(bin_id, field, harmonic)
        if n == 0:
            return 0.0
        mean = total / n
        spread = math.sqrt(max(total2 / n - mean * mean, 0.0))
        if self.error_mode == "s":
            return spread
        return spread / math.sqrt(n)

    def arrays(self) -> Dict[str, np.ndarray]:
        """Raw accumulators, keyed ``sum``, ``sum2``, ``entries``."""
        return {"sum": self._sum, "sum2": self._sum2, "entries": self._entries}

    def load_arrays(self, sums: np.ndarray, sums2: np.ndarray, entries: np.ndarray) -> None:
        if sums.shape != self._sum.shape:
            raise ValueError(f"Profile '{self.name}' expects arrays of shape {self._sum.shape}, got {sums.shape}")
        self._sum[...] = sums
        self._sum2[...] = sums2
        self._entries[...] = entries

    def __repr__(self) -> str:
        return (f"CalibrationProfile({self.name!r}, fields={self.fields}, "
                f"bins={self.event_classes.n_bins}, harmonics={self.harmonics})")


class EventClassCounter:
    """Per event-class counter for diagnostics.

    Events outside the binning range are booked in ``out_of_range``.
    """

    def __init__(self, name: str, event_classes: EventClassVariablesSet):
        self.name = name
        self.event_classes = event_classes
        self.counts = np.zeros(event_classes.n_bins, dtype=np.float64)
        self.out_of_range = 0

    @property
    def layout(self):
        return (self.event_classes.n_bins,)

    def fill(self, bin_id: Optional[int], weight: float = 1.0) -> None:
        if bin_id is None:
            self.out_of_range += 1
            return
        self.counts[bin_id] += weight

    def count(self, bin_id: int) -> float:
        return float(self.counts[bin_id])

    @property
    def total(self) -> float:
        return float(self.counts.sum()) + self.out_of_range

    def __repr__(self) -> str:
        return f"EventClassCounter({self.name!r}, total={self.total:g})"
