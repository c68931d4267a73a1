"""Event table contract.

Enforces the guarantee that an event table handed to the runner carries
every column the resolved configuration reads.
"""

from typing import Iterable

import pandas as pd

from flowcorr.contracts.base import require


def assert_event_table(df: pd.DataFrame, columns: Iterable[str]) -> None:
    """Enforce event table contract.

    Parameters
    ----------
    df : pd.DataFrame
        Event table, one row per event.

    columns : iterable of str
        Column names required by the configuration.

    Raises
    ------
    ContractViolation
        If the table is not a DataFrame or any required column is missing.
    """
    require(
        isinstance(df, pd.DataFrame),
        f"Event table contract violated: expected DataFrame, got {type(df).__name__}"
    )

    missing = [c for c in columns if c not in df.columns]
    require(
        not missing,
        f"Event table contract violated: missing columns {missing}"
    )
