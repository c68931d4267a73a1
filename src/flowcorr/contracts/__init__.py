"""Pipeline contracts: fail-fast enforcement of setup and stage invariants.

Contracts fail immediately and loudly when the correction topology is
inconsistent or a stage does not produce its promised invariants.

Key principle:
- Pydantic validates config correctness
- Contracts validate pipeline correctness
- Quality flags handle bad events and thin calibration bins
"""

from flowcorr.contracts.failure import ContractViolation, ConfigurationError
from flowcorr.contracts.base import require
from flowcorr.contracts.calibration import assert_compatible_layout
from flowcorr.contracts.events import assert_event_table

__all__ = [
    "ContractViolation",
    "ConfigurationError",
    "require",
    "assert_compatible_layout",
    "assert_event_table",
]
