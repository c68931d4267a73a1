"""Named collection of calibration profiles and QA counters.

The registry is what a processing pass produces (``calibration_output``) and
what the next pass attaches as its calibration input. It persists as a NetCDF
file through xarray: each profile contributes ``<name>__sum``,
``<name>__sum2`` and ``<name>__entries`` variables, each counter a
``<name>__counts`` variable, together with the event-class bin edges needed
to rebuild them.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

import numpy as np
import xarray as xr

from flowcorr.core.event_classes import EventClassVariable, EventClassVariablesSet
from flowcorr.core.profiles import CalibrationProfile, EventClassCounter

__all__ = ['CalibrationRegistry']

logger = logging.getLogger(__name__)

Entry = Union[CalibrationProfile, EventClassCounter]


def _event_class_variables(name: str, event_classes: EventClassVariablesSet) -> Dict[str, xr.DataArray]:
    out = {}
    for i, var in enumerate(event_classes.variables):
        out[f"{name}__edges{i}"] = xr.DataArray(
            var.edges, dims=(f"{name}__edge{i}",),
            attrs={"label": var.label, "variable_id": np.int32(var.variable_id)},
        )
    return out


def _event_classes_from(ds: xr.Dataset, name: str, n_vars: int) -> EventClassVariablesSet:
    variables = []
    for i in range(n_vars):
        da = ds[f"{name}__edges{i}"]
        variables.append(EventClassVariable(int(da.attrs["variable_id"]), str(da.attrs["label"]), da.values))
    return EventClassVariablesSet(variables)


def _decode_error_mode(value) -> str:
    # empty attributes do not round-trip through every NetCDF backend
    value = str(value)
    return "" if value == "mean" else value


class CalibrationRegistry:
    """Ordered mapping name -> CalibrationProfile or EventClassCounter."""

    def __init__(self, name: str = "calibration"):
        self.name = name
        self._entries: Dict[str, Entry] = {}

    def add(self, entry: Entry) -> Entry:
        if entry.name in self._entries:
            raise ValueError(f"Registry '{self.name}' already holds '{entry.name}'")
        self._entries[entry.name] = entry
        return entry

    def get(self, name: str) -> Optional[Entry]:
        return self._entries.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def names(self):
        return list(self._entries)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dataset(self) -> xr.Dataset:
        """Convert every profile and counter to xarray variables."""
        data_vars = {}
        for entry in self._entries.values():
            name = entry.name
            n_vars = len(entry.event_classes.variables)
            data_vars.update(_event_class_variables(name, entry.event_classes))

            if isinstance(entry, CalibrationProfile):
                dims = (f"{name}__field", f"{name}__bin", f"{name}__harmonic")
                attrs = {
                    "kind": "profile",
                    "fields": ",".join(entry.fields),
                    "harmonics": np.asarray(entry.harmonics, dtype=np.int32),
                    "error_mode": entry.error_mode or "mean",
                    "min_entries": np.int32(entry.min_entries),
                    "n_event_class_variables": np.int32(n_vars),
                }
                for key, arr in entry.arrays().items():
                    data_vars[f"{name}__{key}"] = xr.DataArray(arr.copy(), dims=dims, attrs=attrs)
            else:
                data_vars[f"{name}__counts"] = xr.DataArray(
                    entry.counts.copy(), dims=(f"{name}__bin",),
                    attrs={
                        "kind": "counter",
                        "out_of_range": np.int32(entry.out_of_range),
                        "n_event_class_variables": np.int32(n_vars),
                    },
                )

        attrs = {"registry": self.name}
        if self.names:
            attrs["entries"] = ",".join(self.names)
        return xr.Dataset(data_vars, attrs=attrs)

    @classmethod
    def from_dataset(cls, ds: xr.Dataset) -> "CalibrationRegistry":
        """Rebuild a registry written by ``to_dataset``."""
        registry = cls(ds.attrs.get("registry", "calibration"))
        names = [n for n in str(ds.attrs.get("entries", "")).split(",") if n]

        for name in names:
            if f"{name}__sum" in ds:
                da = ds[f"{name}__sum"]
                event_classes = _event_classes_from(ds, name, int(da.attrs["n_event_class_variables"]))
                profile = CalibrationProfile(
                    name, event_classes,
                    fields=str(da.attrs["fields"]).split(","),
                    harmonics=[int(h) for h in np.atleast_1d(da.attrs["harmonics"])],
                    error_mode=_decode_error_mode(da.attrs.get("error_mode", "mean")),
                    min_entries=int(da.attrs["min_entries"]),
                )
                profile.load_arrays(
                    ds[f"{name}__sum"].values,
                    ds[f"{name}__sum2"].values,
                    ds[f"{name}__entries"].values,
                )
                registry.add(profile)
            elif f"{name}__counts" in ds:
                da = ds[f"{name}__counts"]
                event_classes = _event_classes_from(ds, name, int(da.attrs["n_event_class_variables"]))
                counter = EventClassCounter(name, event_classes)
                counter.counts[...] = da.values
                counter.out_of_range = int(da.attrs["out_of_range"])
                registry.add(counter)
            else:
                logger.warning("Registry entry '%s' listed but not found in dataset", name)

        return registry

    def save(self, path: Union[str, Path]) -> Path:
        """Write the registry to NetCDF."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_dataset().to_netcdf(path, mode='w', engine='netcdf4', format='NETCDF4')
        logger.info("Saved %d calibration entries to %s", len(self), path)
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> "CalibrationRegistry":
        """Read a registry from NetCDF written by ``save``."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Calibration file not found: {path}")
        with xr.open_dataset(path, engine="netcdf4") as ds:
            registry = cls.from_dataset(ds.load())
        logger.info("Loaded %d calibration entries from %s", len(registry), path)
        return registry

    def __repr__(self) -> str:
        return f"CalibrationRegistry({self.name!r}, {self.names})"
