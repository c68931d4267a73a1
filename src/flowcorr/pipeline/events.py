"""Event table input/output.

An event table has one row per event. Event-class variables are columns
named by their label; the plain Qn vector of configuration ``cfg`` at
harmonic ``h`` is given by the columns ``{cfg}_qx{h}`` and ``{cfg}_qy{h}``,
with an optional boolean ``{cfg}_good`` quality column and an optional
``{cfg}_mult`` multiplicity column.
"""

import logging
from pathlib import Path
from typing import Dict, List, Union, TYPE_CHECKING

import numpy as np
import pandas as pd

from flowcorr.core.flow_vector import FlowVector

if TYPE_CHECKING:
    from flowcorr.schemas import InternalConfig

__all__ = [
    'qx_column', 'qy_column', 'good_column', 'multiplicity_column',
    'required_columns', 'read_event_table', 'write_event_table', 'vector_columns',
    'event_class_matrix',
]

logger = logging.getLogger(__name__)


def qx_column(configuration: str, harmonic: int) -> str:
    return f"{configuration}_qx{harmonic}"


def qy_column(configuration: str, harmonic: int) -> str:
    return f"{configuration}_qy{harmonic}"


def good_column(configuration: str) -> str:
    return f"{configuration}_good"


def multiplicity_column(configuration: str) -> str:
    return f"{configuration}_mult"


def required_columns(config: "InternalConfig") -> List[str]:
    """Columns the event table must carry for ``config``.

    Only the harmonics listed in the configuration are required; harmonics a
    step activates on top of them are read when present and left at zero
    otherwise.
    """
    columns = [ec.label for ec in config.event_classes]
    for detector in config.detectors:
        for cfg in detector.configurations:
            for h in cfg.harmonics:
                columns.extend([qx_column(cfg.name, h), qy_column(cfg.name, h)])
    return columns


def _resolve_format(path: Path, fmt: str) -> str:
    if fmt != "auto":
        return fmt
    if path.suffix.lower() in (".parquet", ".pq"):
        return "parquet"
    return "csv"


def read_event_table(path: Union[str, Path], fmt: str = "auto") -> pd.DataFrame:
    """Load an event table from CSV or Parquet.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Event table not found: {path}")

    if _resolve_format(path, fmt) == "parquet":
        df = pd.read_parquet(path, engine='pyarrow')
    else:
        df = pd.read_csv(path)

    logger.info("Loaded %d events from %s", len(df), path)
    return df


def write_event_table(df: pd.DataFrame, path: Union[str, Path], fmt: str = "parquet",
                      compression: str = "snappy") -> Path:
    """Write an event table, adding the format suffix to ``path``."""
    path = Path(path)
    if fmt == "parquet":
        path = path.with_suffix(".parquet")
        df.to_parquet(path, engine='pyarrow',
                      compression=None if compression == "none" else compression, index=False)
    else:
        path = path.with_suffix(".csv")
        df.to_csv(path, index=False)
    logger.info("Wrote %d events to %s", len(df), path)
    return path


def vector_columns(configuration: str, label: str, vector: FlowVector) -> Dict[str, float]:
    """Flatten ``vector`` into ``{cfg}_{label}_qx{h}``-style columns."""
    prefix = f"{configuration}_{label}"
    return {f"{prefix}_{key}": value for key, value in vector.as_dict().items()}


def event_class_matrix(df: pd.DataFrame, config: "InternalConfig") -> np.ndarray:
    """Event-class variables as an (n_events, n_variables) array ordered by variable_id."""
    labels = [ec.label for ec in sorted(config.event_classes, key=lambda ec: ec.variable_id)]
    return df[labels].to_numpy(dtype=np.float64)
